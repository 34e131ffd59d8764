from .hierarchy import HierarchyArea, HierarchyProject, HierarchyVendorRef, PriceSetting
from .vendors import Vendor
from .customers import Customer, CustomerService, CustomerRewardAccount, CustomerRewardTransaction
from .documents import SequenceCounter
from .orders import Order, GeneratedToken
from .promotions import Voucher

__all__ = [
    'HierarchyArea', 'HierarchyProject', 'HierarchyVendorRef', 'PriceSetting',
    'Vendor',
    'Customer', 'CustomerService', 'CustomerRewardAccount', 'CustomerRewardTransaction',
    'SequenceCounter',
    'Order', 'GeneratedToken',
    'Voucher',
]
