from app.business.customers.models import Customer
from app.business.customers.schemas import CustomerCreate, CustomerRead, CustomerType

__all__ = [
    "Customer",
    "CustomerCreate",
    "CustomerRead",
    "CustomerType",
]
