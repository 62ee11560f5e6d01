from offer_checker.repositories.bids import InMemoryBidsRepository, PostgresBidsRepository
from offer_checker.repositories.vendor_offers import (
    InMemoryVendorOffersRepository,
    PostgresVendorOffersRepository,
)

__all__ = [
    "InMemoryBidsRepository",
    "PostgresBidsRepository",
    "InMemoryVendorOffersRepository",
    "PostgresVendorOffersRepository",
]
