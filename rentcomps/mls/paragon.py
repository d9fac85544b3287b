"""Paragon/FNI system-name schema (StandardNames=0).

Paragon exposes opaque system codes (``L_Keyword2`` is bedrooms,
``LM_Int2_3`` is living area). Location is filtered by the ``L_Area``
municipality code; the table below covers Cape May County, NJ.
"""

from rentcomps.core.schemas import ListingStatus, PropertyType
from rentcomps.mls.base import MlsSchema

CAPE_MAY_AREAS: dict[str, str] = {
    "Avalon": "0501",
    "Cape May": "0502",
    "Cape May Point": "0503",
    "Dennis": "0504",
    "Lower Township": "0505",
    "Middle Township": "0506",
    "North Wildwood": "0507",
    "Ocean City": "0508",
    "Sea Isle City": "0509",
    "Stone Harbor": "0510",
    "Upper Township": "0511",
    "West Cape May": "0512",
    "West Wildwood": "0513",
    "Wildwood": "0514",
    "Wildwood Crest": "0515",
    "Woodbine": "0516",
}

PARAGON_SCHEMA = MlsSchema(
    name="paragon",
    description="Paragon/FNI system field codes",
    search_type="Property",
    class_name="RE_2",
    standard_names=False,
    fields={
        "listing_id": ("L_ListingID", "L_DisplayId"),
        "address": ("L_Address",),
        "street_number": ("L_AddressNumber",),
        "street_name": ("L_AddressStreet",),
        "city": ("L_City",),
        "state": ("L_State",),
        "zip": ("L_Zip",),
        "bedrooms": ("L_Keyword2",),
        "bathrooms": ("LM_Dec_3", "L_Keyword3"),
        "sqft": ("LM_Int2_3",),
        "year_built": ("LM_Int2_1",),
        "property_type": ("L_Type_",),
        "list_price": ("L_AskingPrice",),
        "close_price": ("L_SoldPrice",),
        "list_date": ("L_ListingDate",),
        "close_date": ("L_ClosingDate",),
        "status": ("L_Status",),
        "days_on_market": ("L_DOM",),
        "latitude": ("LMD_MP_Latitude",),
        "longitude": ("LMD_MP_Longitude",),
        "lease_term": ("LFD_LeaseTerms_7",),
        "furnished": ("LFD_Furnished_1",),
        "pets_allowed": ("LFD_PetsAllowed_2",),
        "pool": ("LFD_Pool_3",),
        "laundry": ("LFD_Laundry_4",),
        "appliances": ("LFD_Appliances_5",),
        "utilities": ("LFD_UtilitiesIncluded_6",),
        "parking": ("LM_Int1_5",),
        "garage": ("LM_Int1_6",),
        "photo_count": ("L_PictureCount",),
        "location": ("L_Area",),
    },
    status_codes={
        ListingStatus.ACTIVE: ("A",),
        ListingStatus.PENDING: ("P", "U"),
        ListingStatus.LEASED: ("L", "S"),
    },
    property_type_codes={
        PropertyType.SINGLE_FAMILY: ("SFR",),
        PropertyType.CONDO: ("CONDO",),
        PropertyType.TOWNHOUSE: ("TWNHS",),
        PropertyType.DUPLEX: ("DUPLX",),
        PropertyType.TRIPLEX: ("TRIPL",),
        PropertyType.FOURPLEX: ("QUAD",),
        PropertyType.APARTMENT: ("APT",),
    },
    min_bedrooms=0,
    min_bathrooms=1,
    location_codes=CAPE_MAY_AREAS,
    default_state="NJ",
)
