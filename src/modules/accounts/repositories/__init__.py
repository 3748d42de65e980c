"""Account repositories package."""

from modules.accounts.repositories.django_repository import (
    CustomerDjangoRepository,
    DriverDjangoRepository,
    MerchantDjangoRepository,
)
from modules.accounts.repositories.interfaces import (
    ICustomerRepository,
    IDriverRepository,
    IMerchantRepository,
)

__all__ = [
    "CustomerDjangoRepository",
    "DriverDjangoRepository",
    "ICustomerRepository",
    "IDriverRepository",
    "IMerchantRepository",
    "MerchantDjangoRepository",
]
