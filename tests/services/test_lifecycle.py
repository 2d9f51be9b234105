"""
Tests for the status registry: transition tables and prize-table rules.
"""
from decimal import Decimal

import pytest

from backend.core.exceptions import InvalidStateError, ValidationError
from backend.models import BountyStatus, Visibility
from backend.services.lifecycle import (
    BOUNTY_TRANSITIONS,
    TERMINAL_BOUNTY_STATUSES,
    can_transition_bounty,
    ensure_bounty_transition,
    is_accepting_entries,
    prize_for_position,
    validate_prize_table,
)


class TestBountyTransitions:
    """Tests for the bounty transition table."""

    @pytest.mark.parametrize(
        "current,target",
        [
            (BountyStatus.OPEN, BountyStatus.REVIEWING),
            (BountyStatus.OPEN, BountyStatus.CANCELLED),
            (BountyStatus.OPEN, BountyStatus.CLOSED),
            (BountyStatus.REVIEWING, BountyStatus.COMPLETED),
            (BountyStatus.REVIEWING, BountyStatus.CANCELLED),
        ],
    )
    def test_defined_edges(self, current, target):
        assert can_transition_bounty(current, target)

    @pytest.mark.parametrize(
        "current,target",
        [
            (BountyStatus.REVIEWING, BountyStatus.OPEN),
            (BountyStatus.OPEN, BountyStatus.COMPLETED),
            (BountyStatus.COMPLETED, BountyStatus.REVIEWING),
            (BountyStatus.CANCELLED, BountyStatus.OPEN),
            (BountyStatus.CLOSED, BountyStatus.OPEN),
        ],
    )
    def test_missing_edges(self, current, target):
        assert not can_transition_bounty(current, target)
        with pytest.raises(InvalidStateError):
            ensure_bounty_transition(current, target)

    def test_terminal_statuses_have_no_outgoing_edges(self):
        assert TERMINAL_BOUNTY_STATUSES == {
            BountyStatus.COMPLETED,
            BountyStatus.CLOSED,
            BountyStatus.CANCELLED,
        }
        for status in TERMINAL_BOUNTY_STATUSES:
            assert BOUNTY_TRANSITIONS[status] == frozenset()

    def test_open_to_reviewing_is_reserved_for_the_sweep(self):
        with pytest.raises(InvalidStateError) as exc_info:
            ensure_bounty_transition(BountyStatus.OPEN, BountyStatus.REVIEWING)
        assert exc_info.value.kind == "InvalidState"

        ensure_bounty_transition(BountyStatus.OPEN, BountyStatus.REVIEWING, automated=True)

    def test_sweep_cannot_take_actor_edges(self):
        with pytest.raises(InvalidStateError):
            ensure_bounty_transition(BountyStatus.OPEN, BountyStatus.CANCELLED, automated=True)

    def test_actor_edges_pass(self):
        ensure_bounty_transition(BountyStatus.OPEN, BountyStatus.CANCELLED)
        ensure_bounty_transition(BountyStatus.REVIEWING, BountyStatus.COMPLETED)

    def test_accepts_raw_status_strings(self):
        assert can_transition_bounty("OPEN", "CLOSED")


class TestAcceptingEntries:
    def test_only_open_and_published(self):
        assert is_accepting_entries(BountyStatus.OPEN, Visibility.PUBLISHED)
        assert not is_accepting_entries(BountyStatus.OPEN, Visibility.DRAFT)
        assert not is_accepting_entries(BountyStatus.REVIEWING, Visibility.PUBLISHED)


class TestPrizeTable:
    """Tests for validate_prize_table and prize_for_position."""

    def test_valid_table_is_keyed_by_position_text(self):
        table = validate_prize_table(Decimal("1000"), {1: 500, 2: "300", 3: Decimal("200")})
        assert table == {"1": Decimal("500"), "2": Decimal("300"), "3": Decimal("200")}

    def test_empty_table_is_allowed(self):
        assert validate_prize_table(None, None) == {}
        assert validate_prize_table(Decimal("10"), {}) == {}

    def test_sum_above_amount_is_rejected(self):
        with pytest.raises(ValidationError) as exc_info:
            validate_prize_table(Decimal("700"), {1: 500, 2: 300})
        assert exc_info.value.kind == "ValidationFailed"

    def test_table_without_amount_is_rejected(self):
        with pytest.raises(ValidationError):
            validate_prize_table(None, {1: 100})

    @pytest.mark.parametrize("winnings", [{0: 100}, {-1: 100}, {"first": 100}])
    def test_positions_must_be_positive_integers(self, winnings):
        with pytest.raises(ValidationError):
            validate_prize_table(Decimal("1000"), winnings)

    @pytest.mark.parametrize("prize", [0, -5, "abc", True])
    def test_prizes_must_be_positive_numbers(self, prize):
        with pytest.raises(ValidationError):
            validate_prize_table(Decimal("1000"), {1: prize})

    def test_prize_for_position(self):
        winnings = {"1": "500", "2": "300"}
        assert prize_for_position(winnings, 1) == Decimal("500")
        assert prize_for_position(winnings, 3) is None
        assert prize_for_position(None, 1) is None
