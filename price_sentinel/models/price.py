"""
Price data models.

``Offer`` is what a single source adapter parsed out of its provider's
response. ``PriceRecord`` is the reconciled snapshot that gets persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional


class OfferKind(Enum):
    """Storefront classification of an item."""

    PAID = "paid"
    FREE = "free"
    UNRELEASED = "unreleased"
    DLC = "dlc"
    DELISTED = "delisted"


class PriceSource(Enum):
    """Provenance of a price record, or the item state it was tagged with."""

    CATALOG = "catalog"
    STOREFRONT = "storefront"
    FREE = "free"
    UNRELEASED = "unreleased"
    DELISTED = "delisted"

    @property
    def is_state_tag(self) -> bool:
        return self in (PriceSource.FREE, PriceSource.UNRELEASED, PriceSource.DELISTED)


@dataclass(frozen=True)
class Offer:
    """Parsed response of one source adapter."""

    kind: OfferKind
    current_price: float = 0.0
    original_price: float = 0.0
    discount_percent: int = 0
    historical_low: Optional[float] = None
    name: Optional[str] = None
    currency: Optional[str] = None
    release_date: Optional[str] = None

    @property
    def has_price(self) -> bool:
        return self.kind in (OfferKind.PAID, OfferKind.DLC) and self.current_price > 0

    @property
    def is_discounted(self) -> bool:
        return self.discount_percent > 0


@dataclass
class PriceRecord:
    """Immutable snapshot of an item's price at one polling cycle."""

    item_id: int
    current_price: float
    original_price: float
    discount_percent: int
    historical_low: float
    is_on_sale: bool
    source: PriceSource
    recorded_at: datetime = field(default_factory=datetime.now)
    release_date: Optional[str] = None
    canonical_name: Optional[str] = field(default=None, compare=False)
    state_observed: bool = field(default=True, compare=False)
    id: Optional[int] = field(default=None, compare=False)

    def validate(self) -> bool:
        """Validate price record data."""
        if self.current_price < 0:
            raise ValueError("current_price cannot be negative")

        if self.original_price < 0:
            raise ValueError("original_price cannot be negative")

        if not 0 <= self.discount_percent <= 100:
            raise ValueError("discount_percent must be between 0 and 100")

        if self.historical_low < 0:
            raise ValueError("historical_low cannot be negative")

        if not isinstance(self.source, PriceSource):
            raise ValueError("source must be a PriceSource enum")

        return True

    @property
    def state(self) -> OfferKind:
        """Item state implied by the record's source tag."""
        if self.source == PriceSource.FREE:
            return OfferKind.FREE
        if self.source == PriceSource.UNRELEASED:
            return OfferKind.UNRELEASED
        if self.source == PriceSource.DELISTED:
            return OfferKind.DELISTED
        return OfferKind.PAID

    @property
    def is_priced(self) -> bool:
        return not self.source.is_state_tag and self.current_price > 0
