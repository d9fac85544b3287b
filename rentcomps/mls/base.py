"""MLS schema variant: how one MLS system names and encodes listing fields."""

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from rentcomps.core.schemas import ListingStatus, PropertyType

# Canonical semantic fields a schema may map. Order is the Select order.
CANONICAL_FIELDS: tuple[str, ...] = (
    "listing_id",
    "address",
    "street_number",
    "street_name",
    "street_suffix",
    "city",
    "state",
    "zip",
    "bedrooms",
    "bathrooms",
    "sqft",
    "year_built",
    "property_type",
    "list_price",
    "close_price",
    "list_date",
    "close_date",
    "status",
    "days_on_market",
    "latitude",
    "longitude",
    "lease_term",
    "furnished",
    "pets_allowed",
    "pool",
    "laundry",
    "appliances",
    "utilities",
    "rent_includes",
    "parking",
    "garage",
    "photo_count",
    "location",
)

REQUIRED_FIELDS: frozenset[str] = frozenset({
    "listing_id",
    "list_price",
    "status",
    "bedrooms",
    "bathrooms",
    "sqft",
    "list_date",
})


class MlsSchema(BaseModel):
    """Field dictionary and code tables for one supported MLS system.

    ``fields`` maps a canonical field to the provider's raw field names,
    tried in order; the first name is the one used in queries.
    Instances are validated when constructed, so a broken table fails at
    import rather than mid-search.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    search_type: str = "Property"
    class_name: str
    standard_names: bool = False
    fields: dict[str, tuple[str, ...]]
    status_codes: dict[ListingStatus, tuple[str, ...]]
    property_type_codes: dict[PropertyType, tuple[str, ...]] = Field(default_factory=dict)
    min_bedrooms: int = 0
    min_bathrooms: float = 1.0
    # Bathroom field holds whole numbers only; range bounds are widened to integers.
    integer_bathrooms: bool = False
    location_codes: dict[str, str] = Field(default_factory=dict)
    default_state: str = ""

    @field_validator("location_codes")
    @classmethod
    def lowercase_location_names(cls, v: dict[str, str]) -> dict[str, str]:
        return {name.strip().lower(): code for name, code in v.items()}

    @model_validator(mode="after")
    def check_tables(self) -> "MlsSchema":
        unknown = set(self.fields) - set(CANONICAL_FIELDS)
        if unknown:
            msg = f"{self.name}: unknown canonical fields {sorted(unknown)}"
            raise ValueError(msg)
        missing = REQUIRED_FIELDS - set(self.fields)
        if missing:
            msg = f"{self.name}: missing required fields {sorted(missing)}"
            raise ValueError(msg)
        empty = [k for k, v in self.fields.items() if not v]
        if empty:
            msg = f"{self.name}: no raw field names for {sorted(empty)}"
            raise ValueError(msg)
        statuses = set(self.status_codes)
        if statuses != set(ListingStatus):
            msg = f"{self.name}: status_codes must cover {[s.value for s in ListingStatus]}"
            raise ValueError(msg)
        return self

    def raw_names(self, canonical: str) -> tuple[str, ...]:
        return self.fields.get(canonical, ())

    def query_field(self, canonical: str) -> str | None:
        names = self.fields.get(canonical)
        return names[0] if names else None

    def select_fields(self) -> list[str]:
        """Every raw field the mapper reads, de-duplicated, in canonical order."""
        seen: dict[str, None] = {}
        for canonical in CANONICAL_FIELDS:
            for raw in self.fields.get(canonical, ()):
                seen.setdefault(raw, None)
        return list(seen)

    def resolve_location(self, city: str) -> str | None:
        """Map a city/area name to its location code, if known."""
        return self.location_codes.get(city.strip().lower())
