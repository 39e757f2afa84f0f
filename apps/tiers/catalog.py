"""
Tier Catalog
============

Static definition of the purchasable membership tiers. The catalog is
built once at import time and never mutated.

Prices are stored in minor currency units (US cents). Tier ids are
upper-case internally; the API speaks lower-case ids (``"elite"``) and
accepts either case on input.

Example:
    Looking up a tier::

        from apps.tiers.catalog import get_tier

        tier = get_tier('elite')
        print(tier.display_name, tier.price_minor_units)  # Elite Tier 999900
"""

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class TierDefinition:
    """An immutable purchasable tier."""

    id: str
    display_name: str
    price_minor_units: int
    currency: str
    description: str
    features: Tuple[str, ...]

    @property
    def slug(self) -> str:
        """Lower-case id used on the wire and in storage."""
        return self.id.lower()


class UnknownTier(Exception):
    """Raised when a tier id is not in the catalog."""
    pass


REGULAR = TierDefinition(
    id='REGULAR',
    display_name='Regular Tier',
    price_minor_units=99900,
    currency='usd',
    description='For those who merely want to flaunt their wealth',
    features=(
        'Access to Nothing App',
        'Digital Flex Badge',
        'Leaderboard Placement',
        'Share Your Wealth Status',
    ),
)

ELITE = TierDefinition(
    id='ELITE',
    display_name='Elite Tier',
    price_minor_units=999900,
    currency='usd',
    description='For the seriously wealthy who demand recognition',
    features=(
        'Everything in Regular Tier',
        'Shinier Gold Badge',
        'Higher Leaderboard Placement',
        'Premium Flex Status',
        'Exclusive Elite Serial Number',
    ),
)

GOD = TierDefinition(
    id='GOD',
    display_name='God Mode',
    price_minor_units=9999900,
    currency='usd',
    description='For the ultra-wealthy who can afford to waste money',
    features=(
        'Everything in Elite Tier',
        'Platinum Badge with Diamond Accents',
        'Top Leaderboard Placement',
        'Ultimate Flex Status',
        'Personal AI Concierge Message',
        'Legendary Serial Number',
        '???',
    ),
)

# Ordered cheapest first; position is the tier's rank
TIERS = (REGULAR, ELITE, GOD)

_BY_ID = {tier.id: tier for tier in TIERS}


def get_tier(tier_id: Optional[str]) -> TierDefinition:
    """
    Return the tier for ``tier_id`` (case-insensitive).

    Raises:
        UnknownTier: If the id is empty or not in the catalog.
    """
    tier = _BY_ID.get((tier_id or '').strip().upper())
    if tier is None:
        raise UnknownTier(f"Invalid tier: {tier_id}")
    return tier


def all_tiers() -> Tuple[TierDefinition, ...]:
    return TIERS


def tier_rank(tier_id: str) -> int:
    """Position of the tier in price order (REGULAR=0 < ELITE < GOD)."""
    return TIERS.index(get_tier(tier_id))


def higher_tier(current: Optional[str], candidate: str) -> TierDefinition:
    """Return whichever of the two tiers ranks higher; ``current`` may be None."""
    if current is None:
        return get_tier(candidate)
    if tier_rank(candidate) > tier_rank(current):
        return get_tier(candidate)
    return get_tier(current)
