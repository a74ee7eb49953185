from .catalog import Product
from .customers import Customer
from .memberships import Membership, MembershipPurchase
from .sales import Sale, SaleLine, SaleKind

__all__ = [
    'Product',
    'Customer',
    'Membership', 'MembershipPurchase',
    'Sale', 'SaleLine', 'SaleKind',
]
