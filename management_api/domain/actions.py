from __future__ import annotations

from typing import Dict, FrozenSet, Iterable, List

from management_api.domain.errors import UnknownActionError
from management_api.domain.models import CanonicalAction

ALL_ACTIONS: FrozenSet[CanonicalAction] = frozenset(CanonicalAction)

# Artifactory accepts both the single-letter and the long form of each action.
_ACTION_TABLE: Dict[str, FrozenSet[CanonicalAction]] = {
    "r": frozenset({CanonicalAction.READ}),
    "read": frozenset({CanonicalAction.READ}),
    "w": frozenset({CanonicalAction.WRITE}),
    "write": frozenset({CanonicalAction.WRITE}),
    "m": frozenset({CanonicalAction.MANAGE}),
    "manage": frozenset({CanonicalAction.MANAGE}),
    "d": frozenset({CanonicalAction.DELETE}),
    "delete": frozenset({CanonicalAction.DELETE}),
    "n": frozenset({CanonicalAction.ANNOTATE}),
    "annotate": frozenset({CanonicalAction.ANNOTATE}),
    "admin": ALL_ACTIONS,
}

# Order used whenever an expanded set has to be listed.
_CANONICAL_ORDER: List[CanonicalAction] = list(CanonicalAction)


def normalize_action(raw: str) -> FrozenSet[CanonicalAction]:
    """
    Map a single Artifactory action token onto canonical actions.

    Matching is exact and case-sensitive. `admin` expands to every
    canonical action. Unknown tokens raise UnknownActionError.
    """
    if not isinstance(raw, str):
        raise UnknownActionError(repr(raw))
    try:
        return _ACTION_TABLE[raw]
    except KeyError:
        raise UnknownActionError(raw) from None


def normalize_actions(raws: Iterable[str]) -> List[CanonicalAction]:
    """
    Normalize a list of raw tokens into an ordered, duplicate-free list.

    Order follows the first occurrence in `raws`; tokens expanding to
    several actions contribute them in canonical order.
    """
    result: List[CanonicalAction] = []
    for raw in raws:
        expanded = normalize_action(raw)
        for action in _CANONICAL_ORDER:
            if action in expanded and action not in result:
                result.append(action)
    return result
