"""Unit tests for delivery state-machine guardrails."""

import pytest

from passdrop.common.state_machine import CLAIM_TRANSITIONS, validate_transition


def test_valid_receipt_transitions():
    """Fresh receipts may park or finish; parked receipts may still finish."""

    validate_transition("new", "pending")
    validate_transition("new", "delivered")
    validate_transition("pending", "failed")


def test_terminal_receipt_states_have_no_exits():
    """Delivered and failed receipts are never revisited."""

    with pytest.raises(ValueError):
        validate_transition("delivered", "delivered")
    with pytest.raises(ValueError):
        validate_transition("failed", "delivered")


def test_claims_cannot_park():
    """Claims go straight to delivered because ownership is confirmed first."""

    validate_transition("new", "delivered", CLAIM_TRANSITIONS)
    with pytest.raises(ValueError):
        validate_transition("new", "pending", CLAIM_TRANSITIONS)
    with pytest.raises(ValueError):
        validate_transition("delivered", "delivered", CLAIM_TRANSITIONS)
