"""Orchestrator: wires listing source, scorer, and result export.

Data flow:
  1. Source search → valid rental records
  2. Scorer → distance + similarity score per record
  3. Max-distance filter, stable sort by score, result cap
"""

import json
import logging
from datetime import date, datetime

from rentcomps.core.config import Settings
from rentcomps.core.schemas import ScoredCandidate, SubjectCriteria
from rentcomps.pipeline.scorer import rank_candidates
from rentcomps.sources.base import ListingSource

logger = logging.getLogger(__name__)


class CompSearchResult:
    """Summary of a single comp search execution."""

    def __init__(
        self,
        source: str,
        subject: SubjectCriteria,
        record_count: int,
        ranked: list[ScoredCandidate],
        started_at: datetime,
        finished_at: datetime,
    ) -> None:
        self.source = source
        self.subject = subject
        self.record_count = record_count
        self.ranked = ranked
        self.started_at = started_at
        self.finished_at = finished_at


async def run_comp_search(
    subject: SubjectCriteria,
    source: ListingSource,
    settings: Settings,
    today: date | None = None,
) -> CompSearchResult:
    """Search a source for comps and rank them against the subject.

    Errors from the source (network, auth, protocol) propagate unchanged.
    """
    started_at = datetime.now()

    logger.info("Searching comps for '%s' on %s", subject.address or subject.city, source.source_id)
    records = await source.search(subject, settings.constraints)
    logger.info("Valid records: %d", len(records))

    ranked = rank_candidates(records, subject, settings.scoring, today)
    logger.info("Ranked comps returned: %d", len(ranked))

    return CompSearchResult(
        source=source.source_id,
        subject=subject,
        record_count=len(records),
        ranked=ranked,
        started_at=started_at,
        finished_at=datetime.now(),
    )


def export_results_json(result: CompSearchResult) -> str:
    """Export ranked comps as a JSON string."""
    data = []
    for s in result.ranked:
        r = s.record
        data.append({
            **r.model_dump(mode="json"),
            "photo_url": r.photo_url,
            "distance_miles": s.distance_miles,
            "rent_per_sqft": s.rent_per_sqft,
            "similarity_score": s.score,
        })
    return json.dumps(data, indent=2)
