"""Delivery state machines enforced by the ledger."""

NEW = "new"
PENDING = "pending"
DELIVERED = "delivered"
FAILED = "failed"

RECEIPT_TRANSITIONS: dict[str, set[str]] = {
    NEW: {PENDING, DELIVERED, FAILED},
    PENDING: {DELIVERED, FAILED},
    DELIVERED: set(),
    FAILED: set(),
}

# Ownership is confirmed before a claim is written, so claims never park.
CLAIM_TRANSITIONS: dict[str, set[str]] = {
    NEW: {DELIVERED},
    DELIVERED: set(),
}


def validate_transition(current: str, new: str, transitions: dict[str, set[str]] = RECEIPT_TRANSITIONS) -> None:
    """Raise when a transition is not allowed by the state machine."""

    if new not in transitions.get(current, set()):
        raise ValueError(f"Invalid transition: {current} -> {new}")
