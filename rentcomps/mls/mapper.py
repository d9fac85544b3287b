"""Field mapper: raw provider rows to RentalRecord, subject to DMQL2 conditions.

Design rules:
  - Missing or non-numeric numbers become 0 (never crash on a bad row).
  - A row without an id or a positive price is not a comparable: None.
  - Query conditions are only emitted for subject attributes that are set,
    so an address-only subject still produces a valid query.
"""

import calendar
import logging
import math
from collections.abc import Mapping
from datetime import date, datetime
from typing import TypeVar

from rentcomps.core.config import SearchConstraints
from rentcomps.core.schemas import (
    LeaseTerm,
    ListingStatus,
    PropertyType,
    RawRecord,
    RentalRecord,
    SubjectCriteria,
)
from rentcomps.mls.base import MlsSchema
from rentcomps.rets.codec import AtLeast, Between, Condition, OneOf

logger = logging.getLogger(__name__)

K = TypeVar("K")

TRUTHY_TOKENS = frozenset({"yes", "true", "1", "y"})
FALSY_TOKENS = frozenset({"no", "false", "0", "n", "none"})

_DATE_FORMATS = ("%m/%d/%Y", "%Y%m%d")

# Substring hints, checked in order: "Condo Apartment" is a condo.
_PROPERTY_TYPE_HINTS: tuple[tuple[tuple[str, ...], PropertyType], ...] = (
    (("condo",), PropertyType.CONDO),
    (("town",), PropertyType.TOWNHOUSE),
    (("duplex",), PropertyType.DUPLEX),
    (("triplex",), PropertyType.TRIPLEX),
    (("fourplex", "quadplex"), PropertyType.FOURPLEX),
    (("apartment", "apt"), PropertyType.APARTMENT),
)


class FieldMapper:
    """Translates between one MLS schema and the canonical record shape."""

    def __init__(self, schema: MlsSchema) -> None:
        self._schema = schema
        self._status_lookup = _reverse_unique(schema.status_codes)
        self._type_lookup = _reverse_unique(schema.property_type_codes)

    @property
    def schema(self) -> MlsSchema:
        return self._schema

    # --- raw row → canonical record ---

    def to_canonical(self, raw: RawRecord, *, require_sqft: bool = True) -> RentalRecord | None:
        """Map one raw row, or return None if it is not a valid comparable."""
        listing_id = self._value(raw, "listing_id")
        if not listing_id:
            logger.debug("Row without listing id, skipping")
            return None

        close_price = to_float(self._value(raw, "close_price"))
        rent_price = close_price if close_price > 0 else to_float(self._value(raw, "list_price"))
        if rent_price <= 0:
            logger.debug("Listing %s has no positive price, skipping", listing_id)
            return None

        sqft = to_int(self._value(raw, "sqft"))
        if require_sqft and sqft <= 0:
            logger.debug("Listing %s has no square footage, skipping", listing_id)
            return None

        laundry = self._value(raw, "laundry")
        appliances = self._value(raw, "appliances")

        return RentalRecord(
            listing_id=listing_id,
            address=self._address(raw),
            city=self._value(raw, "city"),
            state=self._value(raw, "state") or self._schema.default_state,
            zip=self._value(raw, "zip"),
            bedrooms=to_int(self._value(raw, "bedrooms")),
            bathrooms=to_float(self._value(raw, "bathrooms")),
            sqft=sqft,
            year_built=to_int(self._value(raw, "year_built")),
            property_type=self.classify_property_type(self._value(raw, "property_type")),
            rent_price=rent_price,
            list_date=parse_date(self._value(raw, "list_date")),
            lease_date=parse_date(self._value(raw, "close_date")),
            status=self.classify_status(self._value(raw, "status")),
            days_on_market=to_int(self._value(raw, "days_on_market")),
            latitude=to_optional_float(self._value(raw, "latitude")),
            longitude=to_optional_float(self._value(raw, "longitude")),
            lease_term=classify_lease_term(self._value(raw, "lease_term")),
            furnished=_furnished(self._value(raw, "furnished")),
            pets_allowed=_pets_allowed(self._value(raw, "pets_allowed")),
            has_washer_dryer=(
                parse_bool(laundry) or _mentions(laundry, "washer") or _mentions(appliances, "washer")
            ),
            has_pool=_flag_or_features(self._value(raw, "pool")),
            utilities_included=(
                parse_bool(self._value(raw, "utilities"))
                or _mentions(self._value(raw, "rent_includes"), "utilit")
            ),
            parking_spaces=to_int(self._value(raw, "parking")),
            garage_spaces=to_int(self._value(raw, "garage")),
            photo_count=to_int(self._value(raw, "photo_count")),
        )

    def to_records(self, rows: list[RawRecord], *, require_sqft: bool = True) -> list[RentalRecord]:
        """Map many rows, dropping the invalid ones."""
        records: list[RentalRecord] = []
        for row in rows:
            record = self.to_canonical(row, require_sqft=require_sqft)
            if record is not None:
                records.append(record)
        dropped = len(rows) - len(records)
        if dropped:
            logger.info("Discarded %d of %d rows as invalid comparables", dropped, len(rows))
        return records

    def classify_status(self, raw_status: str) -> ListingStatus:
        """Map a provider status code or label to Active/Pending/Leased."""
        value = raw_status.strip().lower()
        if not value:
            return ListingStatus.ACTIVE
        exact = self._status_lookup.get(value)
        if exact is not None:
            return exact
        if any(tok in value for tok in ("closed", "leased", "rented")):
            return ListingStatus.LEASED
        if "pending" in value or "contract" in value:
            return ListingStatus.PENDING
        return ListingStatus.ACTIVE

    def classify_property_type(self, raw_type: str) -> PropertyType:
        value = raw_type.strip().lower()
        exact = self._type_lookup.get(value)
        if exact is not None:
            return exact
        for hints, property_type in _PROPERTY_TYPE_HINTS:
            if any(h in value for h in hints):
                return property_type
        return PropertyType.SINGLE_FAMILY

    # --- subject → query conditions ---

    def to_conditions(
        self,
        subject: SubjectCriteria,
        constraints: SearchConstraints,
        today: date | None = None,
    ) -> list[Condition]:
        """Build the DMQL2 conditions for a comp search.

        Order: status, location, bedrooms, bathrooms, square footage,
        recency cutoff, then the optional property-type match.
        """
        schema = self._schema
        today = today or date.today()
        conditions: list[Condition] = []

        status_field = self._query_field("status")
        if constraints.include_active:
            wanted = (ListingStatus.ACTIVE, ListingStatus.LEASED, ListingStatus.PENDING)
        else:
            wanted = (ListingStatus.LEASED,)
        codes = tuple(code for status in wanted for code in schema.status_codes[status])
        conditions.append(OneOf(field=status_field, values=codes))

        location = self._location_condition(subject, constraints)
        if location is not None:
            conditions.append(location)

        if subject.bedrooms > 0:
            low = max(schema.min_bedrooms, subject.bedrooms - constraints.bed_variance)
            high = subject.bedrooms + constraints.bed_variance
            conditions.append(Between(field=self._query_field("bedrooms"), low=low, high=high))

        if subject.bathrooms > 0:
            low_baths = max(schema.min_bathrooms, subject.bathrooms - constraints.bath_variance)
            high_baths = subject.bathrooms + constraints.bath_variance
            if schema.integer_bathrooms:
                low_baths = math.floor(low_baths)
                high_baths = math.ceil(high_baths)
            conditions.append(
                Between(field=self._query_field("bathrooms"), low=low_baths, high=high_baths),
            )

        if subject.sqft > 0:
            band = constraints.sqft_variance_percent / 100.0
            conditions.append(Between(
                field=self._query_field("sqft"),
                low=round(subject.sqft * (1 - band)),
                high=round(subject.sqft * (1 + band)),
            ))

        cutoff = months_before(today, constraints.date_range_months)
        conditions.append(AtLeast(field=self._query_field("list_date"), value=cutoff.isoformat()))

        if constraints.property_type_match and subject.property_type is not None:
            type_field = schema.query_field("property_type")
            type_codes = schema.property_type_codes.get(subject.property_type)
            if type_field and type_codes:
                conditions.append(OneOf(field=type_field, values=type_codes))

        return conditions

    def _location_condition(
        self, subject: SubjectCriteria, constraints: SearchConstraints,
    ) -> Condition | None:
        field = self._schema.query_field("location")
        if field is None:
            return None
        if constraints.location_code:
            return OneOf(field=field, values=(constraints.location_code,))
        if not subject.city.strip():
            return None
        if not self._schema.location_codes:
            return OneOf(field=field, values=(subject.city.strip(),))

        code = self._schema.resolve_location(subject.city)
        if code is not None:
            return OneOf(field=field, values=(code,))
        logger.info(
            "No location code for '%s', searching all %d known areas",
            subject.city, len(self._schema.location_codes),
        )
        all_codes = tuple(sorted(set(self._schema.location_codes.values())))
        return OneOf(field=field, values=all_codes)

    # --- helpers ---

    def _value(self, raw: RawRecord, canonical: str) -> str:
        for name in self._schema.raw_names(canonical):
            value = (raw.get(name) or "").strip()
            if value:
                return value
        return ""

    def _query_field(self, canonical: str) -> str:
        # Required fields are guaranteed by MlsSchema validation.
        return self._schema.raw_names(canonical)[0]

    def _address(self, raw: RawRecord) -> str:
        address = self._value(raw, "address")
        if address:
            return address
        parts = [
            self._value(raw, "street_number"),
            self._value(raw, "street_name"),
            self._value(raw, "street_suffix"),
        ]
        return " ".join(p for p in parts if p)


def to_float(value: str) -> float:
    """Parse a number, tolerating thousands separators and ``$``. Bad input → 0."""
    cleaned = value.replace(",", "").replace("$", "").strip()
    if not cleaned:
        return 0.0
    try:
        result = float(cleaned)
    except ValueError:
        return 0.0
    # float() accepts "nan", "inf" and overflowing exponents
    return result if math.isfinite(result) else 0.0


def to_int(value: str) -> int:
    return int(to_float(value))


def to_optional_float(value: str) -> float | None:
    if not value.strip():
        return None
    try:
        result = float(value)
    except ValueError:
        return None
    return result if math.isfinite(result) else None


def parse_bool(value: str) -> bool:
    return value.strip().lower() in TRUTHY_TOKENS


def parse_date(value: str) -> date | None:
    """Parse ISO (date or datetime), ``MM/DD/YYYY`` or ``YYYYMMDD``."""
    value = value.strip()
    if not value:
        return None
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    logger.debug("Unparseable date '%s'", value)
    return None


def classify_lease_term(raw: str) -> LeaseTerm:
    t = raw.lower()
    if not t:
        return LeaseTerm.TWELVE_MONTHS
    if "month-to-month" in t or "month to month" in t or "mtm" in t:
        return LeaseTerm.MONTH_TO_MONTH
    if "6" in t or "six" in t:
        return LeaseTerm.SIX_MONTHS
    if "24" in t or "two year" in t or "2 year" in t:
        return LeaseTerm.TWENTY_FOUR_MONTHS
    if "12" in t or "annual" in t or "year" in t:
        return LeaseTerm.TWELVE_MONTHS
    return LeaseTerm.OTHER


def months_before(today: date, months: int) -> date:
    """Same day ``months`` calendar months earlier, clamped to month end."""
    years_back, month_index = divmod(today.month - 1 - months, 12)
    year = today.year + years_back
    month = month_index + 1
    day = min(today.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def _mentions(text: str, needle: str) -> bool:
    return needle in text.lower()


def _furnished(value: str) -> bool:
    lower = value.strip().lower()
    return parse_bool(lower) or lower.startswith(("furnished", "partial"))


def _pets_allowed(value: str) -> bool:
    lower = value.strip().lower()
    if parse_bool(lower):
        return True
    if lower in FALSY_TOKENS or "no pets" in lower or "not allowed" in lower:
        return False
    return any(tok in lower for tok in ("allowed", "cats ok", "dogs ok", "negotiable"))


def _flag_or_features(value: str) -> bool:
    """Y/N flag, or a feature list where anything but "None" means present."""
    lower = value.strip().lower()
    if not lower or lower in FALSY_TOKENS:
        return False
    return True


def _reverse_unique(table: Mapping[K, tuple[str, ...]]) -> dict[str, K]:
    """code (lower-cased) → key, keeping only codes that map to one key."""
    owners: dict[str, set[K]] = {}
    for key, codes in table.items():
        for code in codes:
            owners.setdefault(code.strip().lower(), set()).add(key)
    return {code: next(iter(keys)) for code, keys in owners.items() if len(keys) == 1}
