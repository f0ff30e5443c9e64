"""
Models do Sistema
"""

# Base models (usuários do painel)
from pizzaria.models.base_models import (
    User,
    brazilian_now,
    BRAZIL_TZ,
)

# Pedidos, cardápio e entregas
from pizzaria.models.delivery_models import (
    # Enums
    StatusPedido,
    TipoEntrega,
    FormaPagamento,
    OrigemPedido,
    StatusMotoboy,
    StatusEntrega,
    # Models
    Customer,
    Address,
    Product,
    Order,
    OrderItem,
    OrderStatusHistory,
    Courier,
    Delivery,
    DeliveryFeeZone,
)

# Back-office
from pizzaria.models.backoffice_models import (
    # Enums
    StatusCaixa,
    TipoLancamento,
    CategoriaLancamento,
    NivelFidelidade,
    StatusCupom,
    StatusNotificacao,
    # Models
    CashRegister,
    CashEntry,
    LoyaltyConfig,
    LoyaltyCustomer,
    Reward,
    RewardRedemption,
    Review,
    FiscalReceiptConfig,
    FiscalReceipt,
    NotificationConfig,
    NotificationHistory,
)

__all__ = [
    # Base
    "User",
    "brazilian_now",
    "BRAZIL_TZ",
    # Pedidos - Enums
    "StatusPedido",
    "TipoEntrega",
    "FormaPagamento",
    "OrigemPedido",
    "StatusMotoboy",
    "StatusEntrega",
    # Pedidos - Models
    "Customer",
    "Address",
    "Product",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "Courier",
    "Delivery",
    "DeliveryFeeZone",
    # Back-office - Enums
    "StatusCaixa",
    "TipoLancamento",
    "CategoriaLancamento",
    "NivelFidelidade",
    "StatusCupom",
    "StatusNotificacao",
    # Back-office - Models
    "CashRegister",
    "CashEntry",
    "LoyaltyConfig",
    "LoyaltyCustomer",
    "Reward",
    "RewardRedemption",
    "Review",
    "FiscalReceiptConfig",
    "FiscalReceipt",
    "NotificationConfig",
    "NotificationHistory",
]
