# services/transition_policy.py
"""
Single source of truth for which order-status moves each role may request.

The tables are plain data keyed by role; every caller (status mutation,
cancellation, CLI) asks this module instead of keeping its own copy.
SCHEDULED orders are advanced by the backend scheduler only, so no role has
an edge out of SCHEDULED.
"""
from typing import Any, Dict, FrozenSet, Optional

from models import OrderStatus as S, Role

TERMINAL_STATUSES: FrozenSet[S] = frozenset({S.REJECTED, S.CANCELLED, S.FAILED, S.DELIVERED})

_NONE: FrozenSet[S] = frozenset()

TRANSITION_TABLES: Dict[Role, Dict[S, FrozenSet[S]]] = {
    Role.ADMIN: {
        S.PLACED: frozenset({S.ACCEPTED, S.REJECTED}),
        S.ACCEPTED: frozenset({S.READY}),
        S.READY: frozenset({S.PICKED_UP}),
        S.PICKED_UP: frozenset({S.OUT_FOR_DELIVERY}),
        S.OUT_FOR_DELIVERY: frozenset({S.DELIVERED}),
    },
    Role.KITCHEN_STAFF: {
        S.PLACED: frozenset({S.ACCEPTED, S.REJECTED}),
        S.ACCEPTED: frozenset({S.PREPARING}),
        S.PREPARING: frozenset({S.READY}),
        # no authority past READY
    },
}

# Edges into CANCELLED go through the cancellation endpoint, not the status PATCH.
CANCELLATION_TABLE: Dict[Role, FrozenSet[S]] = {
    Role.ADMIN: frozenset({S.PLACED, S.ACCEPTED, S.PREPARING, S.READY}),
    Role.KITCHEN_STAFF: _NONE,
}


def parse_role(value: Any) -> Optional[Role]:
    if isinstance(value, Role):
        return value
    try:
        return Role(str(value or "").strip().upper())
    except ValueError:
        return None


def parse_status(value: Any) -> Optional[S]:
    if isinstance(value, S):
        return value
    try:
        return S(str(value or "").strip().upper())
    except ValueError:
        return None


def next_allowed_statuses(current: Any, role: Any) -> FrozenSet[S]:
    """Legal targets for `role` from `current`. Unknown role or status: empty set."""
    r = parse_role(role)
    s = parse_status(current)
    if r is None or s is None or s in TERMINAL_STATUSES:
        return _NONE
    return TRANSITION_TABLES[r].get(s, _NONE)


def can_transition(current: Any, target: Any, role: Any) -> bool:
    t = parse_status(target)
    return t is not None and t in next_allowed_statuses(current, role)


def is_terminal(status: Any) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def cancellable_statuses(role: Any) -> FrozenSet[S]:
    r = parse_role(role)
    if r is None:
        return _NONE
    return CANCELLATION_TABLE.get(r, _NONE)


def can_cancel(current: Any, role: Any) -> bool:
    s = parse_status(current)
    return s is not None and s in cancellable_statuses(role)


def declared_statuses() -> FrozenSet[S]:
    """Every status that appears in any table, as a source or a target."""
    out = set(TERMINAL_STATUSES) | {S.SCHEDULED}
    for table in TRANSITION_TABLES.values():
        for src, targets in table.items():
            out.add(src)
            out.update(targets)
    for sources in CANCELLATION_TABLE.values():
        out.update(sources)
    return frozenset(out)
