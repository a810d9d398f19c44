"""Acceptance rules for change events and guarded deliveries.

Pure functions only; the state store and the guard decide what to do with
the answers.
"""

from __future__ import annotations

from sessionrelay.models.delivery import DeliveryRecord
from sessionrelay.state.events import CookieChange


def domain_matches(domain: str, target_domain: str) -> bool:
    """Return ``True`` if *domain* is *target_domain* or one of its subdomains.

    A leading dot (``.instagram.com``) is the cookie wildcard form and is
    ignored on both sides.
    """
    candidate = domain.strip().lstrip(".").lower()
    target = target_domain.strip().lstrip(".").lower()
    if not candidate or not target:
        return False
    return candidate == target or candidate.endswith("." + target)


def is_watched_change(change: CookieChange, *, target_domain: str, cookie_name: str) -> bool:
    """Whether *change* concerns the watched cookie and carries a value."""
    if change.removed or not change.value:
        return False
    if change.name != cookie_name:
        return False
    return domain_matches(change.domain, target_domain)


def is_duplicate(token: str, record: DeliveryRecord) -> bool:
    """Whether *token* was already confirmed delivered."""
    return record.last_delivered_token is not None and token == record.last_delivered_token
