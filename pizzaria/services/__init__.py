# services da pizzaria


from pizzaria.services.customer_service import CustomerService
from pizzaria.services.product_service import ProductService
from pizzaria.services.fee_service import FeeService
from pizzaria.services.loyalty_service import LoyaltyService
from pizzaria.services.order_service import OrderService
from pizzaria.services.courier_service import CourierService
from pizzaria.services.delivery_service import DeliveryService
from pizzaria.services.cash_register_service import CashRegisterService
from pizzaria.services.review_service import ReviewService
from pizzaria.services.fiscal_service import FiscalService
from pizzaria.services.notification_service import NotificationService
from pizzaria.services.report_service import ReportService

__all__ = [
    "CustomerService",
    "ProductService",
    "FeeService",
    "LoyaltyService",
    "OrderService",
    "CourierService",
    "DeliveryService",
    "CashRegisterService",
    "ReviewService",
    "FiscalService",
    "NotificationService",
    "ReportService",
]
