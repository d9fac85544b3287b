"""RESO standard-name schema (StandardNames=1).

Used by MLS feeds that expose RESO Data Dictionary names such as
``ListingKey`` and ``BedroomsTotal``. Location is filtered by city name.
"""

from rentcomps.core.schemas import ListingStatus, PropertyType
from rentcomps.mls.base import MlsSchema

RESO_SCHEMA = MlsSchema(
    name="reso",
    description="RESO Data Dictionary field names",
    search_type="Property",
    class_name="RL_2",
    standard_names=True,
    fields={
        "listing_id": ("ListingKey", "ListingId", "sysid"),
        "address": ("UnparsedAddress", "StreetAddress"),
        "street_number": ("StreetNumber",),
        "street_name": ("StreetName",),
        "street_suffix": ("StreetSuffix",),
        "city": ("City",),
        "state": ("StateOrProvince",),
        "zip": ("PostalCode",),
        "bedrooms": ("BedroomsTotal",),
        "bathrooms": ("BathroomsTotalInteger", "BathroomsFull"),
        "sqft": ("LivingArea", "BuildingAreaTotal"),
        "year_built": ("YearBuilt",),
        "property_type": ("PropertyType", "PropertySubType"),
        "list_price": ("ListPrice",),
        "close_price": ("ClosePrice",),
        "list_date": ("ListDate", "ListingContractDate"),
        "close_date": ("CloseDate",),
        "status": ("StandardStatus", "MlsStatus"),
        "days_on_market": ("DaysOnMarket", "CumulativeDaysOnMarket"),
        "latitude": ("Latitude",),
        "longitude": ("Longitude",),
        "lease_term": ("LeaseTerm",),
        "furnished": ("Furnished", "FurnishedYN"),
        "pets_allowed": ("PetsAllowed", "PetsAllowedYN"),
        "pool": ("PoolPrivateYN", "PoolFeatures"),
        "laundry": ("LaundryFeatures",),
        "appliances": ("Appliances",),
        "utilities": ("UtilitiesIncluded",),
        "rent_includes": ("RentIncludes",),
        "parking": ("ParkingTotal", "ParkingSpaces"),
        "garage": ("GarageSpaces",),
        "photo_count": ("PhotosCount",),
        "location": ("City",),
    },
    status_codes={
        ListingStatus.ACTIVE: ("Active",),
        ListingStatus.PENDING: ("Pending", "Active Under Contract"),
        ListingStatus.LEASED: ("Closed",),
    },
    property_type_codes={
        PropertyType.SINGLE_FAMILY: ("Residential Lease",),
        PropertyType.CONDO: ("Condominium Lease",),
        PropertyType.TOWNHOUSE: ("Townhouse Lease",),
        PropertyType.DUPLEX: ("Multi-Family",),
        PropertyType.TRIPLEX: ("Multi-Family",),
        PropertyType.FOURPLEX: ("Multi-Family",),
        PropertyType.APARTMENT: ("Residential Lease",),
    },
    min_bedrooms=0,
    min_bathrooms=1,
    integer_bathrooms=True,
)
