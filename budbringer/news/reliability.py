"""
Source reliability scoring.

Each content source carries a rolling fetch history. After every fetch the
orchestrator reports success or failure and the score is recomputed as a
fixed weighted sum:

    historical accuracy   0.30   (editorial track record, default 0.50)
    fetch success rate    0.25   (successful / total fetches)
    content quality       0.20   (flat 0.60 until measured)
    expert endorsement    0.15   (static domain tier)
    social signals        0.10   (flat 0.50 until measured)

Scores feed back into ranking (sort_by_reliability) and optional exclusion
of chronically broken sources (filter_by_minimum_reliability).
"""

import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional
from urllib.parse import urlparse

from sqlalchemy.exc import SQLAlchemyError

from ..database import ContentSourceModel, Database, from_db_time, to_db_time
from ..schemas import NewsItem, SourceReliability, SourceTier

logger = logging.getLogger(__name__)

RELIABILITY_WEIGHTS = {
    "historical_accuracy": 0.30,
    "fetch_success_rate": 0.25,
    "content_quality": 0.20,
    "expert_endorsement": 0.15,
    "social_signals": 0.10,
}

TIER_SCORES = {
    SourceTier.TIER_1: 0.90,
    SourceTier.TIER_2: 0.75,
    SourceTier.TIER_3: 0.60,
    SourceTier.TIER_4: 0.50,
    SourceTier.UNKNOWN: 0.50,
}

NORWEGIAN_TIER1_DOMAINS = ["nrk.no", "aftenposten.no", "dn.no", "vg.no", "nettavisen.no"]
TECH_TIER1_DOMAINS = [
    "techcrunch.com", "arstechnica.com", "theverge.com", "wired.com",
    "technologyreview.com", "itavisen.no",
]

DEFAULT_HISTORICAL_ACCURACY = 0.50
DEFAULT_FETCH_SUCCESS_RATE = 1.00
DEFAULT_RELIABILITY = 0.50
CONTENT_QUALITY_PLACEHOLDER = 0.60
SOCIAL_SIGNAL_PLACEHOLDER = 0.50
MIN_RELIABILITY = 0.40


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def source_domain(base_url: str) -> str:
    host = urlparse(base_url).hostname or ""
    return host[4:] if host.startswith("www.") else host


def classify_tier(base_url: str) -> SourceTier:
    """Static tier lookup by domain (subdomains inherit their parent's tier)."""
    domain = source_domain(base_url)
    if not domain:
        return SourceTier.UNKNOWN

    def _matches(known: str) -> bool:
        return domain == known or domain.endswith("." + known)

    if any(_matches(d) for d in NORWEGIAN_TIER1_DOMAINS + TECH_TIER1_DOMAINS):
        return SourceTier.TIER_1
    labels = domain.split(".")
    if "edu" in labels or "gov" in labels:
        return SourceTier.TIER_2
    return SourceTier.UNKNOWN


def calculate_base_reliability_score(
    base_url: str,
    historical_accuracy: Optional[float] = None,
    fetch_success_rate: Optional[float] = None,
) -> float:
    """Weighted reliability score clamped to [0, 1].

    Defaults only replace missing values: a source with a 0.0 success rate
    scores as such.
    """
    if historical_accuracy is None:
        historical_accuracy = DEFAULT_HISTORICAL_ACCURACY
    if fetch_success_rate is None:
        fetch_success_rate = DEFAULT_FETCH_SUCCESS_RATE

    score = (
        historical_accuracy * RELIABILITY_WEIGHTS["historical_accuracy"]
        + fetch_success_rate * RELIABILITY_WEIGHTS["fetch_success_rate"]
        + CONTENT_QUALITY_PLACEHOLDER * RELIABILITY_WEIGHTS["content_quality"]
        + TIER_SCORES[classify_tier(base_url)] * RELIABILITY_WEIGHTS["expert_endorsement"]
        + SOCIAL_SIGNAL_PLACEHOLDER * RELIABILITY_WEIGHTS["social_signals"]
    )
    return max(0.0, min(1.0, score))


class SourceReliabilityTracker:
    """
    Persists per-source fetch stats on content_sources rows.

    Store failures are logged and swallowed: a reliability update must never
    abort a pipeline run.
    """

    def __init__(self, database: Database, clock=_utcnow):
        self.db = database
        self._clock = clock

    def update_after_fetch(self, source_id: int, success: bool) -> Optional[float]:
        """Record one fetch outcome. Returns the new score, or None if not recorded."""
        try:
            with self.db.get_session() as session:
                row = session.get(ContentSourceModel, source_id)
                if row is None:
                    logger.warning(f"[RELIABILITY] Unknown source id {source_id}, not updated")
                    return None

                total = (row.total_fetches or 0) + 1
                successful = (row.successful_fetches or 0) + (1 if success else 0)
                rate = successful / total

                score = calculate_base_reliability_score(
                    row.base_url,
                    historical_accuracy=row.historical_accuracy,
                    fetch_success_rate=rate,
                )

                row.total_fetches = total
                row.successful_fetches = successful
                row.fetch_success_rate = rate
                row.reliability_score = score
                row.last_fetch_success = success
                row.last_fetch_at = to_db_time(self._clock())
                name = row.name
        except SQLAlchemyError as e:
            logger.error(f"[RELIABILITY] Failed to update source {source_id}: {e}")
            return None

        logger.info(
            f"[RELIABILITY] {name}: {score:.2f} "
            f"(fetch rate {rate*100:.1f}%, {successful}/{total})"
        )
        return score

    def get_reliability(self, source_id: int) -> float:
        stats = self.get_source_reliability(source_id)
        return stats.reliability_score if stats else DEFAULT_RELIABILITY

    def get_source_reliability(self, source_id: int) -> Optional[SourceReliability]:
        try:
            with self.db.get_session() as session:
                row = session.get(ContentSourceModel, source_id)
                if row is None:
                    return None
                return SourceReliability(
                    source_id=row.id,
                    source_name=row.name,
                    reliability_score=(
                        row.reliability_score if row.reliability_score is not None
                        else DEFAULT_RELIABILITY
                    ),
                    historical_accuracy=row.historical_accuracy,
                    fetch_success_rate=row.fetch_success_rate,
                    total_fetches=row.total_fetches or 0,
                    successful_fetches=row.successful_fetches or 0,
                    last_fetch_success=row.last_fetch_success,
                    last_fetch_at=from_db_time(row.last_fetch_at),
                )
        except SQLAlchemyError as e:
            logger.error(f"[RELIABILITY] Failed to read source {source_id}: {e}")
            return None

    def get_all_reliabilities(self) -> Dict[str, float]:
        """Source name → score for every source. Unscored sources get 0.50."""
        try:
            with self.db.get_session() as session:
                rows = session.query(ContentSourceModel.name, ContentSourceModel.reliability_score).all()
        except SQLAlchemyError as e:
            logger.error(f"[RELIABILITY] Failed to load scores: {e}")
            return {}
        return {
            name: (score if score is not None else DEFAULT_RELIABILITY)
            for name, score in rows
        }


def filter_by_minimum_reliability(
    items: List[NewsItem],
    scores: Dict[str, float],
    min_score: float = MIN_RELIABILITY,
) -> List[NewsItem]:
    """Drop items whose source scores below min_score. Unknown sources score 0.50."""
    kept = [i for i in items if scores.get(i.source, DEFAULT_RELIABILITY) >= min_score]
    dropped = len(items) - len(kept)
    if dropped:
        logger.info(f"[RELIABILITY] Dropped {dropped} items from sources below {min_score:.2f}")
    return kept


def sort_by_reliability(items: List[NewsItem], scores: Dict[str, float]) -> List[NewsItem]:
    """Most reliable source first. Stable within equal scores."""
    return sorted(items, key=lambda i: scores.get(i.source, DEFAULT_RELIABILITY), reverse=True)
