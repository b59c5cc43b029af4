"""
Response cache for model answers.

Entries are keyed by a fingerprint of the normalized question, the page,
the tier and the calendar day. Expiry is enforced on every read, so a stale
entry is never served even if the cleanup sweep has not run. The cache is an
optimization only: any store failure is treated as a miss.
"""

import hashlib
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional

from tiered_answers.storage.db import DEFAULT_DB_PATH
from tiered_answers.storage.models import CachedResponse
from tiered_answers.storage.repository import (
    delete_expired_responses,
    fetch_cached_response,
    upsert_cached_response,
)

from .log_config import get_logger
from .tiers import DEFAULT_TIER_TABLE, ModelTier, TierTable
from .token_counter import TokenUsage

logger = get_logger(__name__)


def normalize_question(question: str) -> str:
    """Lower-case and collapse whitespace so trivial variants share an entry."""
    return " ".join(question.lower().split())


def fingerprint(question: str, current_page: str, tier: ModelTier, day: date) -> str:
    """Deterministic cache key for one question on one page, tier and day."""
    key = "|".join([normalize_question(question), current_page, tier.value, day.isoformat()])
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class ResponseCache:
    """Stores and serves previously generated model answers."""

    def __init__(
        self,
        db_path: str = DEFAULT_DB_PATH,
        tiers: TierTable = DEFAULT_TIER_TABLE,
        clock: Callable[[], datetime] = datetime.now
    ):
        self.db_path = db_path
        self.tiers = tiers
        self.clock = clock

    def key_for(self, question: str, current_page: str, tier: ModelTier) -> str:
        return fingerprint(question, current_page, tier, self.clock().date())

    def ttl_for(self, tier: ModelTier) -> timedelta:
        return timedelta(hours=self.tiers.get_spec(tier).cache_ttl_hours)

    def get(self, query_hash: str) -> Optional[CachedResponse]:
        """Return the unexpired entry for ``query_hash``, or None.

        A store failure is logged and reported as a miss.
        """
        try:
            return fetch_cached_response(query_hash, self.clock(), self.db_path)
        except Exception:
            logger.warning("Cache read failed, treating as miss", exc_info=True)
            return None

    def put(
        self,
        query_hash: str,
        response_text: str,
        tier: ModelTier,
        question: str,
        current_page: str,
        suggestions: Optional[List[str]] = None,
        actions: Optional[List[Dict[str, str]]] = None,
        usage: Optional[TokenUsage] = None,
        ttl: Optional[timedelta] = None
    ) -> bool:
        """Store a fresh answer under ``query_hash``.

        ``ttl`` defaults to the tier's configured lifetime; a zero TTL means
        the answer is not cached. A failed write is logged and
        never raised.

        Returns:
            True if the entry was written
        """
        if ttl is None:
            ttl = self.ttl_for(tier)
        if ttl <= timedelta(0):
            return False

        now = self.clock()
        usage = usage or TokenUsage()
        entry = CachedResponse(
            query_hash=query_hash,
            response_text=response_text,
            model_tier=tier,
            created_at=now,
            expires_at=now + ttl,
            suggestions=list(suggestions or []),
            actions=list(actions or []),
        )
        try:
            upsert_cached_response(
                entry,
                query_text=question,
                current_page=current_page,
                input_tokens=usage.input_tokens,
                output_tokens=usage.output_tokens,
                db_path=self.db_path,
            )
            return True
        except Exception:
            logger.warning("Cache write failed for tier=%s", tier.value, exc_info=True)
            return False

    def cleanup_expired(self) -> int:
        """Delete every expired entry.

        Returns:
            Number of entries removed

        Raises:
            sqlite3.Error: If the store cannot be reached
        """
        removed = delete_expired_responses(self.clock(), self.db_path)
        logger.info("Removed %d expired cache entries", removed)
        return removed
