"""Distance and similarity scoring for rental comps.

Score range: 0-100 (integer). Additive terms, each clamped at >= 0:

  square footage   25  linear decay to 0 at ``sqft_tolerance`` difference
  distance         20  linear decay to 0 at ``distance_radius_miles``;
                       flat ``unknown_distance_credit`` when distance is unknown
  bedrooms         15  exact; 7 for a difference of one
  bathrooms        10  exact; 5 for a difference up to one
  recency          10  linear decay over ``recency_window_days``
  amenities        20  furnished 4, pets 4, washer/dryer 4, pool 3,
                       parking 3 and garage 2 when at least the subject's count
"""

import logging
import math
from datetime import date

from rentcomps.core.config import ScoringConfig
from rentcomps.core.schemas import RentalRecord, ScoredCandidate, SubjectCriteria

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 3959.0

SQFT_POINTS = 25.0
DISTANCE_POINTS = 20.0
RECENCY_POINTS = 10.0


def haversine_miles(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in miles, rounded to two decimals."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return round(EARTH_RADIUS_MILES * c, 2)


def candidate_distance(record: RentalRecord, subject: SubjectCriteria) -> float | None:
    """Distance from subject to record, or None if either lacks coordinates."""
    if not (subject.has_coordinates and record.has_coordinates):
        return None
    return haversine_miles(
        subject.latitude, subject.longitude,  # type: ignore[arg-type]
        record.latitude, record.longitude,  # type: ignore[arg-type]
    )


def score_candidate(
    record: RentalRecord,
    subject: SubjectCriteria,
    distance_miles: float | None,
    config: ScoringConfig,
    today: date | None = None,
) -> int:
    """Compute the 0-100 similarity score of one candidate."""
    today = today or date.today()
    score = 0.0

    # Square footage
    if subject.sqft > 0:
        diff = abs(record.sqft - subject.sqft) / subject.sqft
        score += max(0.0, SQFT_POINTS * (1 - diff / config.sqft_tolerance))

    # Distance
    if distance_miles is None:
        score += config.unknown_distance_credit
    else:
        score += max(0.0, DISTANCE_POINTS * (1 - distance_miles / config.distance_radius_miles))

    # Bedrooms
    bed_diff = abs(record.bedrooms - subject.bedrooms)
    if bed_diff == 0:
        score += 15
    elif bed_diff == 1:
        score += 7

    # Bathrooms
    bath_diff = abs(record.bathrooms - subject.bathrooms)
    if bath_diff == 0:
        score += 10
    elif bath_diff <= 1:
        score += 5

    score += _recency_score(record.relevant_date, today, config.recency_window_days)
    score += _amenity_score(record, subject)

    return max(0, min(100, round(score)))


def score_candidates(
    records: list[RentalRecord],
    subject: SubjectCriteria,
    config: ScoringConfig,
    today: date | None = None,
) -> list[ScoredCandidate]:
    """Score every record, preserving input order."""
    today = today or date.today()
    scored: list[ScoredCandidate] = []
    for record in records:
        distance = candidate_distance(record, subject)
        scored.append(ScoredCandidate(
            record=record,
            distance_miles=distance,
            score=score_candidate(record, subject, distance, config, today),
        ))
    return scored


def rank_candidates(
    records: list[RentalRecord],
    subject: SubjectCriteria,
    config: ScoringConfig,
    today: date | None = None,
) -> list[ScoredCandidate]:
    """Score, drop candidates beyond the max distance, sort, and cap.

    The distance filter only applies when the subject has coordinates.
    Ties keep their original order (stable sort).
    """
    scored = score_candidates(records, subject, config, today)

    if subject.has_coordinates:
        before = len(scored)
        scored = [
            s for s in scored
            if s.distance_miles is None or s.distance_miles <= config.max_distance_miles
        ]
        if before != len(scored):
            logger.debug(
                "Distance filter: removed %d beyond %.1f miles",
                before - len(scored), config.max_distance_miles,
            )

    scored.sort(key=lambda s: s.score, reverse=True)
    return scored[: config.result_cap]


def _recency_score(relevant: date | None, today: date, window_days: int) -> float:
    """10 points for today, decaying linearly to 0 at ``window_days``."""
    if relevant is None:
        return 0.0
    days_since = max(0, (today - relevant).days)
    return max(0.0, RECENCY_POINTS * (1 - days_since / window_days))


def _amenity_score(record: RentalRecord, subject: SubjectCriteria) -> float:
    checks = (
        (record.furnished == subject.furnished, 4),
        (record.pets_allowed == subject.pets_allowed, 4),
        (record.has_washer_dryer == subject.has_washer_dryer, 4),
        (record.has_pool == subject.has_pool, 3),
        (record.parking_spaces >= subject.parking_spaces, 3),
        (record.garage_spaces >= subject.garage_spaces, 2),
    )
    return float(sum(weight for matched, weight in checks if matched))
