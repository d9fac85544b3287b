"""Core data models for the rental comp engine."""

from datetime import date
from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

# Provider field name -> raw string value, one per search row.
RawRecord = dict[str, str]


class PropertyType(str, Enum):
    SINGLE_FAMILY = "Single Family"
    CONDO = "Condo"
    TOWNHOUSE = "Townhouse"
    DUPLEX = "Duplex"
    TRIPLEX = "Triplex"
    FOURPLEX = "Fourplex"
    APARTMENT = "Apartment"


class ListingStatus(str, Enum):
    ACTIVE = "Active"
    PENDING = "Pending"
    LEASED = "Leased"


class LeaseTerm(str, Enum):
    MONTH_TO_MONTH = "Month-to-Month"
    SIX_MONTHS = "6 Months"
    TWELVE_MONTHS = "12 Months"
    TWENTY_FOUR_MONTHS = "24 Months"
    OTHER = "Other"


class RentalRecord(BaseModel):
    """A rental listing normalized from one provider row.

    Frozen: scoring wraps it in ScoredCandidate instead of mutating it.
    """

    model_config = ConfigDict(frozen=True)

    listing_id: str
    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    bedrooms: int = 0
    bathrooms: float = 0.0
    sqft: int = 0
    year_built: int = 0
    property_type: PropertyType = PropertyType.SINGLE_FAMILY
    rent_price: float = Field(gt=0.0)
    list_date: date | None = None
    lease_date: date | None = None
    status: ListingStatus = ListingStatus.ACTIVE
    days_on_market: int = 0
    latitude: float | None = None
    longitude: float | None = None
    lease_term: LeaseTerm = LeaseTerm.TWELVE_MONTHS
    furnished: bool = False
    pets_allowed: bool = False
    has_washer_dryer: bool = False
    has_pool: bool = False
    utilities_included: bool = False
    parking_spaces: int = 0
    garage_spaces: int = 0
    photo_count: int = 0

    @property
    def has_coordinates(self) -> bool:
        return _valid_coordinates(self.latitude, self.longitude)

    @property
    def relevant_date(self) -> date | None:
        """Lease date when present, otherwise the list date."""
        return self.lease_date or self.list_date

    @property
    def photo_url(self) -> str:
        return f"/api/photos/{self.listing_id}"


class SubjectCriteria(BaseModel):
    """The property that candidates are compared against.

    Every numeric attribute may be left at zero; zero means "unknown" and
    the matching query condition is skipped.
    """

    address: str = ""
    city: str = ""
    state: str = ""
    zip: str = ""
    bedrooms: int = Field(default=0, ge=0)
    bathrooms: float = Field(default=0.0, ge=0.0)
    sqft: int = Field(default=0, ge=0)
    year_built: int = 0
    property_type: PropertyType | None = None
    latitude: float | None = None
    longitude: float | None = None
    furnished: bool = False
    pets_allowed: bool = False
    has_washer_dryer: bool = False
    has_pool: bool = False
    utilities_included: bool = False
    parking_spaces: int = Field(default=0, ge=0)
    garage_spaces: int = Field(default=0, ge=0)

    @property
    def has_coordinates(self) -> bool:
        return _valid_coordinates(self.latitude, self.longitude)

    @classmethod
    def from_yaml(cls, path: str | Path) -> "SubjectCriteria":
        """Load a subject property from a YAML file."""
        path = Path(path)
        if not path.exists():
            msg = f"Subject file not found: {path}"
            raise FileNotFoundError(msg)
        raw: dict[str, Any] = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(raw)


class ScoredCandidate(BaseModel):
    """Wrapper that pairs a frozen RentalRecord with its distance and score."""

    model_config = ConfigDict(frozen=True)

    record: RentalRecord
    distance_miles: float | None = None
    score: int = Field(default=0, ge=0, le=100)

    @property
    def rent_per_sqft(self) -> float:
        if self.record.sqft <= 0:
            return 0.0
        return round(self.record.rent_price / self.record.sqft, 2)


def _valid_coordinates(lat: float | None, lng: float | None) -> bool:
    # MLS feeds use 0/0 for "not geocoded"
    if lat is None or lng is None:
        return False
    return not (lat == 0 and lng == 0)
