from app.models.pharmacy import Pharmacy
from app.models.staff import Staff
from app.models.medicine import Medicine
from app.models.receipt import Receipt, ReceiptItem
from app.models.admin_debt import AdminDebt
from app.models.notification import Notification
from app.models.sale_request import SaleRequest

__all__ = ["Pharmacy", "Staff", "Medicine", "Receipt", "ReceiptItem", "AdminDebt", "Notification", "SaleRequest"]
