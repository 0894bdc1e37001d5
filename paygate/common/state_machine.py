"""Reconciliation state machine enforced per payment intent."""

INITIAL = "INITIAL"
PENDING_VERIFICATION = "PENDING_VERIFICATION"
VERIFIED_SUCCESS = "VERIFIED_SUCCESS"
COMMITTED = "COMMITTED"
FAILED = "FAILED"

ALLOWED_TRANSITIONS: dict[str, set[str]] = {
    INITIAL: {PENDING_VERIFICATION, FAILED},
    PENDING_VERIFICATION: {VERIFIED_SUCCESS, FAILED},
    VERIFIED_SUCCESS: {COMMITTED, FAILED},
    COMMITTED: set(),
    FAILED: set(),
}

TERMINAL_STATES = frozenset({COMMITTED, FAILED})


def validate_transition(current: str, new: str) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in ALLOWED_TRANSITIONS.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
