"""Permission scopes that can be requested from the rides OAuth service."""

from __future__ import annotations

from collections.abc import Iterable
from enum import Enum


class Scope(str, Enum):
    """A single permission. Declaration order is the serialization order."""

    RIDE_WIDGETS = "ride_widgets"
    ALL_TRIPS = "all_trips"
    HISTORY = "history"
    HISTORY_LITE = "history_lite"
    PROFILE = "profile"
    PLACES = "places"
    REQUEST = "request"
    REQUEST_RECEIPT = "request_receipt"


_CANONICAL_ORDER = {scope: index for index, scope in enumerate(Scope)}


def serialize_scopes(scopes: Iterable[Scope]) -> str:
    """Join scopes with single spaces in canonical order.

    The result does not depend on input order and duplicates are collapsed,
    so the same set always produces the same string.
    """
    unique = set(scopes)
    return " ".join(
        scope.value for scope in sorted(unique, key=_CANONICAL_ORDER.__getitem__)
    )


def parse_scopes(text: str | None) -> frozenset[Scope]:
    """Parse a space-delimited scope string. Unknown identifiers are skipped."""
    if not text:
        return frozenset()

    known = {scope.value: scope for scope in Scope}
    return frozenset(known[item] for item in text.split() if item in known)
