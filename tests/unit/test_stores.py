"""
Contract tests for LedgerStore implementations.

Every test here runs against both the local store and the Snowflake
repository (on sqlite) through the parametrized `store` fixture.
"""

from datetime import date
from uuid import uuid4

import pytest

from src.core.ledger.errors import BalanceConflictError
from src.core.ledger.models import Balance, Substitution, Trainer, TrainerPair


def make_substitution(absent, substitute, on=date(2024, 5, 1), notes=None) -> Substitution:
    return Substitution(
        absent_trainer_id=absent,
        substitute_trainer_id=substitute,
        date=on,
        notes=notes,
    )


class TestTrainerStorage:

    def test_save_and_get(self, store):
        trainer = Trainer(name="Dana")
        store.save_trainer(trainer)

        loaded = store.get_trainer(trainer.id)

        assert loaded == trainer

    def test_save_existing_updates(self, store):
        trainer = Trainer(name="Dana")
        store.save_trainer(trainer)

        trainer.rename("Dana K.")
        store.save_trainer(trainer)

        assert store.get_trainer(trainer.id).name == "Dana K."
        assert len(store.list_trainers()) == 1

    def test_get_missing_returns_none(self, store):
        assert store.get_trainer(uuid4()) is None

    def test_delete(self, store):
        trainer = Trainer(name="Dana")
        store.save_trainer(trainer)

        assert store.delete_trainer(trainer.id) is True
        assert store.delete_trainer(trainer.id) is False
        assert store.list_trainers() == []


class TestSubstitutionStorage:

    def test_add_and_get(self, store, alice, bob):
        substitution = make_substitution(alice, bob, notes="Covered spin")
        store.add_substitution(substitution)

        assert store.get_substitution(substitution.id) == substitution

    def test_delete(self, store, alice, bob):
        substitution = make_substitution(alice, bob)
        store.add_substitution(substitution)

        assert store.delete_substitution(substitution.id) is True
        assert store.delete_substitution(substitution.id) is False
        assert store.get_substitution(substitution.id) is None

    def test_delete_for_trainer_matches_either_role(self, store, alice, bob, carol):
        store.add_substitution(make_substitution(alice, bob))
        store.add_substitution(make_substitution(carol, alice))
        kept = make_substitution(bob, carol)
        store.add_substitution(kept)

        assert store.delete_substitutions_for_trainer(alice) == 2
        assert store.list_substitutions() == [kept]


class TestBalanceStorage:

    def test_insert_when_absent(self, store, alice, bob):
        pair = TrainerPair.of(alice, bob)
        balance = Balance(debtor_id=alice, creditor_id=bob, days_owed=1)

        store.write_balance(pair, expected=None, new=balance)

        assert store.get_balance(pair) == balance

    def test_update_in_place(self, store, alice, bob):
        pair = TrainerPair.of(alice, bob)
        one = Balance(debtor_id=alice, creditor_id=bob, days_owed=1)
        two = Balance(debtor_id=alice, creditor_id=bob, days_owed=2)
        store.write_balance(pair, expected=None, new=one)

        store.write_balance(pair, expected=one, new=two)

        assert store.get_balance(pair) == two
        assert len(store.list_balances()) == 1

    def test_delete_with_none(self, store, alice, bob):
        pair = TrainerPair.of(alice, bob)
        one = Balance(debtor_id=alice, creditor_id=bob, days_owed=1)
        store.write_balance(pair, expected=None, new=one)

        store.write_balance(pair, expected=one, new=None)

        assert store.get_balance(pair) is None

    def test_insert_over_existing_conflicts(self, store, alice, bob):
        pair = TrainerPair.of(alice, bob)
        store.write_balance(pair, expected=None, new=Balance(debtor_id=alice, creditor_id=bob))

        with pytest.raises(BalanceConflictError):
            store.write_balance(pair, expected=None, new=Balance(debtor_id=bob, creditor_id=alice))

        assert store.get_balance(pair).debtor_id == alice

    def test_stale_expected_value_conflicts(self, store, alice, bob):
        pair = TrainerPair.of(alice, bob)
        two = Balance(debtor_id=alice, creditor_id=bob, days_owed=2)
        store.write_balance(pair, expected=None, new=two)

        stale = Balance(debtor_id=alice, creditor_id=bob, days_owed=1)
        with pytest.raises(BalanceConflictError):
            store.write_balance(pair, expected=stale, new=None)

        assert store.get_balance(pair) == two

    def test_direction_is_part_of_expected_value(self, store, alice, bob):
        pair = TrainerPair.of(alice, bob)
        store.write_balance(pair, expected=None, new=Balance(debtor_id=alice, creditor_id=bob))

        with pytest.raises(BalanceConflictError):
            store.write_balance(
                pair,
                expected=Balance(debtor_id=bob, creditor_id=alice),
                new=Balance(debtor_id=bob, creditor_id=alice, days_owed=2),
            )

    def test_balance_for_other_pair_rejected(self, store, alice, bob, carol):
        with pytest.raises(ValueError):
            store.write_balance(
                TrainerPair.of(alice, bob),
                expected=None,
                new=Balance(debtor_id=alice, creditor_id=carol),
            )

    def test_delete_for_trainer_matches_either_role(self, store, alice, bob, carol):
        store.write_balance(TrainerPair.of(alice, bob), None, Balance(debtor_id=alice, creditor_id=bob))
        store.write_balance(TrainerPair.of(alice, carol), None, Balance(debtor_id=carol, creditor_id=alice))
        store.write_balance(TrainerPair.of(bob, carol), None, Balance(debtor_id=bob, creditor_id=carol))

        assert store.delete_balances_for_trainer(alice) == 2
        assert [b.pair for b in store.list_balances()] == [TrainerPair.of(bob, carol)]


class TestAtomicUnits:

    def test_exception_rolls_back_everything(self, store, alice, bob):
        trainer = Trainer(name="Dana")
        substitution = make_substitution(alice, bob)

        with pytest.raises(RuntimeError):
            with store.atomic():
                store.save_trainer(trainer)
                store.add_substitution(substitution)
                store.write_balance(TrainerPair.of(alice, bob), None, Balance(debtor_id=alice, creditor_id=bob))
                raise RuntimeError("boom")

        assert store.get_trainer(trainer.id) is None
        assert store.get_substitution(substitution.id) is None
        assert store.list_balances() == []

    def test_nested_units_commit_with_outermost(self, store):
        first, second = Trainer(name="One"), Trainer(name="Two")

        with store.atomic():
            with store.atomic():
                store.save_trainer(first)
            store.save_trainer(second)

        assert {t.id for t in store.list_trainers()} == {first.id, second.id}

    def test_failure_after_nested_unit_discards_it(self, store):
        trainer = Trainer(name="One")

        with pytest.raises(RuntimeError):
            with store.atomic():
                with store.atomic():
                    store.save_trainer(trainer)
                raise RuntimeError("boom")

        assert store.list_trainers() == []

    def test_earlier_units_survive_later_failure(self, store):
        kept = Trainer(name="Kept")
        store.save_trainer(kept)

        with pytest.raises(RuntimeError):
            with store.atomic():
                store.delete_trainer(kept.id)
                raise RuntimeError("boom")

        assert store.get_trainer(kept.id) == kept
