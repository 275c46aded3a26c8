"""Quota tiers and the policy that picks one for a user."""

import time
from dataclasses import dataclass

from src.config.settings import get_settings


@dataclass(frozen=True)
class Limits:
    name: str
    credits: int
    search: int
    research: int


def anonymous_limits() -> Limits:
    s = get_settings()
    return Limits("anonymous", s.ANONYMOUS_CREDITS, s.ANONYMOUS_SEARCH, s.ANONYMOUS_RESEARCH)


def free_limits() -> Limits:
    s = get_settings()
    return Limits("free", s.FREE_CREDITS, s.FREE_SEARCH, s.FREE_RESEARCH)


def pro_limits() -> Limits:
    s = get_settings()
    return Limits("pro", s.PRO_CREDITS, s.PRO_SEARCH, s.PRO_RESEARCH)


# (is_pro, is_anonymous) -> tier
_TIERS = {
    (True, False): pro_limits,
    (False, False): free_limits,
    (False, True): anonymous_limits,
}


def is_pro(customer: dict | None, now: float | None = None) -> bool:
    subscription = (customer or {}).get("subscription") or {}
    now = time.time() if now is None else now
    try:
        current_period_end = float(subscription.get("current_period_end") or 0)
    except (TypeError, ValueError):
        return False
    return current_period_end > now


def get_limits(customer: dict | None, is_anonymous: bool, now: float | None = None) -> Limits:
    """Pick the quota tier. Unlisted combinations get the most restrictive tier."""
    tier = _TIERS.get((is_pro(customer, now), is_anonymous), anonymous_limits)
    return tier()


def remaining_credits(limits: Limits, usage: dict, model: dict) -> int:
    return limits.credits - (usage.get("credits") or 0) - (model.get("credits") or 0)
