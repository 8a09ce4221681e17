# ThreatView: Core - Subscription Tiers
#
# Three subscription tiers decide which statistics and actions the
# dashboard renders versus masks:
# - Free: headline counts and the weekly pattern
# - Pro: source breakdowns, IoC values, CSV export
# - Business: everything, including report generation and API access
#
# Tier selection is a local toggle; no billing is involved.

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


class SubscriptionTier(str, Enum):
    """
    Subscription level, totally ordered by capability.

    Business includes everything Pro has, Pro everything Free has.
    Comparison operators follow that order, not the string values.
    """

    FREE = "free"
    PRO = "pro"
    BUSINESS = "business"

    @property
    def rank(self) -> int:
        return _TIER_ORDER.index(self)

    def includes(self, other: "SubscriptionTier") -> bool:
        """True if this tier carries every capability of ``other``."""
        return self.rank >= other.rank

    def __lt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, SubscriptionTier):
            return NotImplemented
        return self.rank >= other.rank

    @property
    def label(self) -> str:
        return self.value.capitalize()

    @property
    def description(self) -> str:
        """User-friendly description of the tier."""
        descriptions = {
            SubscriptionTier.FREE: (
                "Headline threat counts, severity breakdown and the weekly pattern."
            ),
            SubscriptionTier.PRO: (
                "Adds blocked-attack totals, source country and threat type "
                "breakdowns, full IoC values and CSV export."
            ),
            SubscriptionTier.BUSINESS: (
                "Adds report generation and API access for the whole team."
            ),
        }
        return descriptions[self]

    @classmethod
    def parse(cls, value: str) -> "SubscriptionTier":
        """Parse a tier from string (case-insensitive).

        Raises:
            ValueError: if the string names no tier.
        """
        try:
            return cls(value.strip().lower())
        except ValueError:
            raise ValueError(f"Unknown subscription tier: {value!r}") from None

    def __str__(self) -> str:
        return self.label


_TIER_ORDER: List[SubscriptionTier] = [
    SubscriptionTier.FREE,
    SubscriptionTier.PRO,
    SubscriptionTier.BUSINESS,
]


class TierManager:
    """
    Holds the active subscription tier for a session.

    Changes are synchronous: the new tier applies to every visibility
    check made after ``set_tier`` returns.
    """

    def __init__(self, initial_tier: SubscriptionTier = SubscriptionTier.FREE):
        self._tier = initial_tier
        self._change_history: List[Dict[str, Any]] = []

    @property
    def current_tier(self) -> SubscriptionTier:
        return self._tier

    def set_tier(self, new_tier: SubscriptionTier, reason: str = "") -> bool:
        """
        Switch to ``new_tier``.

        Returns:
            True if the tier changed, False if it was already active.
        """
        if new_tier == self._tier:
            return False
        self._change_history.append({
            'from': self._tier.value,
            'to': new_tier.value,
            'reason': reason,
            'timestamp': datetime.utcnow().isoformat(),
        })
        logger.info("Subscription tier changed: %s -> %s", self._tier.value, new_tier.value)
        self._tier = new_tier
        return True

    def is_upgrade(self, new_tier: SubscriptionTier) -> bool:
        return new_tier > self._tier

    @property
    def history(self) -> List[Dict[str, Any]]:
        return list(self._change_history)
