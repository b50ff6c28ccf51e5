"""
Error values carried in Err(...) by the sale core and the debt tracker.

Each error has a stable `code` (stored on SaleRequest rows and in audit logs)
and a `message` that is safe to show to the user.
"""
from dataclasses import dataclass, field
from typing import Tuple


@dataclass(frozen=True)
class ValidationFailed:
    """Malformed request. Nothing was touched."""
    message: str
    code: str = field(default="validation_failed", init=False)


@dataclass(frozen=True)
class MedicineNotFound:
    medicine_id: int
    code: str = field(default="medicine_not_found", init=False)

    @property
    def message(self) -> str:
        return f"Medicine {self.medicine_id} not found"


@dataclass(frozen=True)
class InsufficientStock:
    medicine_id: int
    requested: int
    available: int
    medicine_name: str = ""
    code: str = field(default="insufficient_stock", init=False)

    @property
    def message(self) -> str:
        name = self.medicine_name or f"Medicine {self.medicine_id}"
        return f"{name}: {self.available} left, reduce quantity"


@dataclass(frozen=True)
class SaleInProgress:
    """The request token belongs to an attempt that has not finished yet."""
    token: str
    code: str = field(default="sale_in_progress", init=False)

    @property
    def message(self) -> str:
        return "This sale is already being processed"


@dataclass(frozen=True)
class SaleCancelled:
    code: str = field(default="sale_cancelled", init=False)

    @property
    def message(self) -> str:
        return "Sale cancelled before it was saved"


@dataclass(frozen=True)
class SaleAborted:
    """Persisting failed; every reservation was released."""
    reason: str
    code: str = field(default="sale_aborted", init=False)

    @property
    def message(self) -> str:
        return "The sale could not be saved. No stock was deducted, please try again."


@dataclass(frozen=True)
class ReconciliationRequired:
    """Compensation failed: stock for these (medicine_id, quantity) pairs is still deducted."""
    unreleased: Tuple[Tuple[int, int], ...]
    reason: str = ""
    code: str = field(default="reconciliation_required", init=False)

    @property
    def message(self) -> str:
        return "The sale failed and stock needs manual reconciliation"


@dataclass(frozen=True)
class ReceiptNotFound:
    receipt_id: int
    code: str = field(default="receipt_not_found", init=False)

    @property
    def message(self) -> str:
        return f"Receipt {self.receipt_id} not found"


@dataclass(frozen=True)
class NotADebtReceipt:
    receipt_id: int
    code: str = field(default="not_a_debt_receipt", init=False)

    @property
    def message(self) -> str:
        return f"Receipt {self.receipt_id} was not paid by debt"


@dataclass(frozen=True)
class DebtAlreadySettled:
    receipt_id: int
    code: str = field(default="debt_already_settled", init=False)

    @property
    def message(self) -> str:
        return f"Debt on receipt {self.receipt_id} is already paid"
