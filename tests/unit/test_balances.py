"""
Tests for the pure balance rules.

Covers each case of apply/revert, the boundary where a pair becomes
even, and property tests for the zero-sum and inverse behaviour over
arbitrary event sequences.
"""

from uuid import uuid4

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.core.ledger.balances import (
    apply_substitution,
    balance_from_net,
    net_balance,
    revert_substitution,
)
from src.core.ledger.models import Balance


A = uuid4()
B = uuid4()


def owes(debtor, creditor, days):
    return Balance(debtor_id=debtor, creditor_id=creditor, days_owed=days)


# ---------------------------------------------------------------------------
# apply_substitution
# ---------------------------------------------------------------------------

class TestApplySubstitution:

    def test_first_substitution_creates_one_day_debt(self):
        """A absent, B covers → A owes B one day."""
        result = apply_substitution(None, A, B)

        assert result == owes(A, B, 1)
        assert net_balance(result, A, B) == 1
        assert net_balance(result, B, A) == -1

    def test_same_direction_increments(self):
        """a second A-absent event grows the debt."""
        result = apply_substitution(apply_substitution(None, A, B), A, B)
        assert result == owes(A, B, 2)

    def test_opposite_direction_at_one_day_clears_balance(self):
        """A owes B one day, then B is absent → even, no flip."""
        result = apply_substitution(owes(A, B, 1), B, A)

        assert result is None
        assert net_balance(result, A, B) == 0

    def test_opposite_direction_above_one_decrements(self):
        """A owes B 2, B absent → A owes B 1, direction kept."""
        result = apply_substitution(owes(A, B, 2), B, A)

        assert result == owes(A, B, 1)
        assert net_balance(result, A, B) == 1

    def test_balance_for_another_pair_rejected(self):
        with pytest.raises(ValueError, match="does not belong"):
            apply_substitution(owes(A, uuid4(), 1), A, B)


# ---------------------------------------------------------------------------
# revert_substitution
# ---------------------------------------------------------------------------

class TestRevertSubstitution:

    def test_revert_after_single_apply_restores_even(self):
        """apply then revert → no balance."""
        assert revert_substitution(apply_substitution(None, A, B), A, B) is None

    def test_same_direction_decrements(self):
        assert revert_substitution(owes(A, B, 3), A, B) == owes(A, B, 2)

    def test_opposite_direction_increments(self):
        """B owes A; removing an A-absent event means B owed one more day."""
        assert revert_substitution(owes(B, A, 2), A, B) == owes(B, A, 3)

    def test_revert_on_even_pair_restores_other_direction(self):
        """
        B absent then A absent leaves the pair even.

        Removing the A-absent event leaves only B's absence, so B owes A.
        """
        state = apply_substitution(apply_substitution(None, B, A), A, B)
        assert state is None

        result = revert_substitution(state, A, B)

        assert result == owes(B, A, 1)
        assert net_balance(result, A, B) == -1

    def test_revert_never_produces_zero_day_balance(self):
        assert revert_substitution(owes(A, B, 1), A, B) is None


# ---------------------------------------------------------------------------
# Net balance helpers
# ---------------------------------------------------------------------------

class TestNetBalance:

    def test_read_is_idempotent(self):
        balance = owes(A, B, 4)
        assert net_balance(balance, A, B) == net_balance(balance, A, B) == 4

    def test_no_balance_reads_zero(self):
        assert net_balance(None, A, B) == 0

    @pytest.mark.parametrize("net", [-3, -1, 0, 1, 5])
    def test_balance_from_net_round_trips(self, net):
        assert net_balance(balance_from_net(net, A, B), A, B) == net


# ---------------------------------------------------------------------------
# Properties
# ---------------------------------------------------------------------------

# True: A absent, B covers. False: B absent, A covers.
events = st.lists(st.booleans(), max_size=60)
nets = st.integers(min_value=-20, max_value=20)


def run(state, sequence):
    for a_absent in sequence:
        absent, substitute = (A, B) if a_absent else (B, A)
        state = apply_substitution(state, absent, substitute)
    return state


class TestLedgerProperties:

    @given(events)
    def test_zero_sum(self, sequence):
        """Net equals A-absent events minus B-absent events."""
        state = run(None, sequence)
        expected = sum(1 if a_absent else -1 for a_absent in sequence)
        assert net_balance(state, A, B) == expected

    @given(events)
    def test_stored_magnitude_is_positive(self, sequence):
        state = None
        for a_absent in sequence:
            state = run(state, [a_absent])
            assert state is None or state.days_owed >= 1

    @given(nets, st.booleans())
    def test_revert_undoes_apply(self, net, a_absent):
        absent, substitute = (A, B) if a_absent else (B, A)
        before = balance_from_net(net, A, B)

        after = revert_substitution(apply_substitution(before, absent, substitute), absent, substitute)

        assert after == before

    @given(nets, st.booleans())
    def test_apply_undoes_revert(self, net, a_absent):
        absent, substitute = (A, B) if a_absent else (B, A)
        before = balance_from_net(net, A, B)

        after = apply_substitution(revert_substitution(before, absent, substitute), absent, substitute)

        assert after == before

    @given(events, st.data())
    def test_reverting_any_event_matches_the_remaining_events(self, sequence, data):
        """Deleting one past event, however old, lands where the other events alone would."""
        if not sequence:
            return
        index = data.draw(st.integers(min_value=0, max_value=len(sequence) - 1))
        a_absent = sequence[index]
        absent, substitute = (A, B) if a_absent else (B, A)

        reverted = revert_substitution(run(None, sequence), absent, substitute)
        remaining = sequence[:index] + sequence[index + 1:]

        assert net_balance(reverted, A, B) == net_balance(run(None, remaining), A, B)
