from .inventory import Product
from .customers import Customer, CustomerPayment
from .sales import Sale, SaleItem, SalePayment
from .registers import CashRegister
from .suspended import SuspendedOrder
from .settings import StoreSettings

# Record store table name -> model
TABLES = {
    model.__tablename__: model
    for model in (
        Product,
        Customer,
        CustomerPayment,
        Sale,
        SaleItem,
        SalePayment,
        CashRegister,
        SuspendedOrder,
        StoreSettings,
    )
}

__all__ = [
    'Product',
    'Customer', 'CustomerPayment',
    'Sale', 'SaleItem', 'SalePayment',
    'CashRegister',
    'SuspendedOrder',
    'StoreSettings',
    'TABLES',
]
