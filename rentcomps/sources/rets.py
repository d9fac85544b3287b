"""RETS listing source: wires field mapper, codec, and RETS client.

Flow per search:
  1. FieldMapper builds DMQL2 conditions from subject + constraints
  2. RetsClient runs Search (session acquire, one retry on 401, release)
  3. FieldMapper maps rows to RentalRecord, dropping invalid rows
"""

import logging
from datetime import date

from rentcomps.core.config import SearchConstraints
from rentcomps.core.schemas import RentalRecord, SubjectCriteria
from rentcomps.mls.mapper import FieldMapper
from rentcomps.rets.client import RetsClient, SearchRequest
from rentcomps.rets.codec import build_query
from rentcomps.sources.base import ListingSource

logger = logging.getLogger(__name__)


def build_search_request(
    mapper: FieldMapper,
    subject: SubjectCriteria,
    constraints: SearchConstraints,
    *,
    use_select: bool = True,
    today: date | None = None,
) -> SearchRequest:
    """Build the Search request for a subject without sending it."""
    schema = mapper.schema
    conditions = mapper.to_conditions(subject, constraints, today)
    return SearchRequest(
        search_type=schema.search_type,
        class_name=schema.class_name,
        query=build_query(conditions),
        select=schema.select_fields() if use_select else [],
        limit=constraints.limit,
        standard_names=schema.standard_names,
    )


class RetsListingSource(ListingSource):
    """Rental listings from a RETS server, in one MLS schema's dialect."""

    def __init__(
        self,
        client: RetsClient,
        mapper: FieldMapper,
        *,
        use_select: bool = True,
    ) -> None:
        self._client = client
        self._mapper = mapper
        self._use_select = use_select

    @property
    def source_id(self) -> str:
        return f"rets:{self._mapper.schema.name}"

    async def search(
        self, subject: SubjectCriteria, constraints: SearchConstraints,
    ) -> list[RentalRecord]:
        request = build_search_request(
            self._mapper, subject, constraints, use_select=self._use_select,
        )
        response = await self._client.search(request)
        records = self._mapper.to_records(
            response.records, require_sqft=constraints.require_sqft,
        )
        logger.info(
            "%s: %d rows → %d valid records", self.source_id, len(response.records), len(records),
        )
        return records
