from datetime import timedelta
from unittest import mock

from django.db import IntegrityError, transaction
from django.db.migrations.loader import MigrationLoader
from django.test import TestCase

from arena.judge import REASON_FALLBACK, Verdict
from arena.models import Battle, Character
from arena.services import (
    BattleRecordError,
    CooldownActive,
    NoOpponentAvailable,
    check_cooldown,
    record_battle,
    run_battle,
    select_opponent,
)
from arena_backend.config import ArenaConfig


def _create(name: str, elo: int = 1000) -> Character:
    return Character.objects.create(name=name, description=f"{name} description", elo=elo)


class CooldownTests(TestCase):
    def setUp(self):
        self.alpha = _create("Alpha")
        self.beta = _create("Beta")

    def test_no_history_is_permitted(self):
        status = check_cooldown(self.alpha.id)

        self.assertTrue(status.permitted)
        self.assertEqual(status.remain, 0)

    def test_remaining_seconds_count_down_to_zero(self):
        battle = Battle.objects.create(a=self.alpha, b=self.beta, winner=self.alpha, reason="fallback", log="x")
        started = battle.created_at

        right_after = check_cooldown(self.beta.id, now=started)
        self.assertFalse(right_after.permitted)
        self.assertEqual(right_after.remain, 60)

        later = check_cooldown(self.alpha.id, now=started + timedelta(seconds=30))
        self.assertEqual(later.remain, 30)

        almost = check_cooldown(self.alpha.id, now=started + timedelta(seconds=59, milliseconds=500))
        self.assertFalse(almost.permitted)
        self.assertEqual(almost.remain, 1)

        done = check_cooldown(self.alpha.id, now=started + timedelta(seconds=60))
        self.assertTrue(done.permitted)
        self.assertEqual(done.remain, 0)

    def test_uses_most_recent_battle(self):
        gamma = _create("Gamma")
        old = Battle.objects.create(a=self.alpha, b=self.beta, winner=self.alpha, reason="fallback", log="x")
        Battle.objects.filter(id=old.id).update(created_at=old.created_at - timedelta(hours=1))
        recent = Battle.objects.create(a=gamma, b=self.alpha, winner=gamma, reason="fallback", log="y")

        status = check_cooldown(self.alpha.id, now=recent.created_at + timedelta(seconds=10))

        self.assertEqual(status.remain, 50)


class SelectOpponentTests(TestCase):
    def setUp(self):
        self.alpha = _create("Alpha")
        self.beta = _create("Beta")
        self.gamma = _create("Gamma")

    def test_never_selects_self_or_previous_opponents(self):
        Battle.objects.create(a=self.beta, b=self.alpha, winner=self.beta, reason="fallback", log="x")

        for _ in range(10):
            self.assertEqual(select_opponent(self.alpha), self.gamma)

    def test_exhausted_pool_raises(self):
        Battle.objects.create(a=self.alpha, b=self.beta, winner=self.alpha, reason="fallback", log="x")
        Battle.objects.create(a=self.gamma, b=self.alpha, winner=self.gamma, reason="fallback", log="y")

        with self.assertRaises(NoOpponentAvailable):
            select_opponent(self.alpha)

    def test_lonely_character_has_no_opponent(self):
        Character.objects.exclude(id=self.alpha.id).delete()

        with self.assertRaises(NoOpponentAvailable):
            select_opponent(self.alpha)


class BattlePairConstraintTests(TestCase):
    def test_reversed_pair_is_rejected(self):
        alpha = _create("Alpha")
        beta = _create("Beta")
        Battle.objects.create(a=alpha, b=beta, winner=alpha, reason="fallback", log="x")

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Battle.objects.create(a=beta, b=alpha, winner=beta, reason="fallback", log="y")

    def test_pair_columns_hold_sorted_ids(self):
        alpha = _create("Alpha")
        beta = _create("Beta")

        battle = Battle.objects.create(a=beta, b=alpha, winner=beta, reason="fallback", log="x")

        self.assertEqual((battle.pair_low, battle.pair_high), (alpha.id, beta.id))

    def test_migrations_declare_plain_pair_constraint(self):
        state = MigrationLoader(None, ignore_no_migrations=True).project_state()
        constraints = {c.name: c for c in state.models["arena", "battle"].options["constraints"]}

        pair = constraints["arena_battle_pair_unique"]
        self.assertEqual(tuple(pair.fields), ("pair_low", "pair_high"))
        self.assertFalse(pair.expressions)

    def test_self_battle_is_rejected(self):
        alpha = _create("Alpha")

        with self.assertRaises(IntegrityError):
            with transaction.atomic():
                Battle.objects.create(a=alpha, b=alpha, winner=alpha, reason="fallback", log="x")


class RecordBattleTests(TestCase):
    def setUp(self):
        self.alpha = _create("Alpha", elo=1200)
        self.beta = _create("Beta", elo=1000)

    def _verdict(self, winner, loser):
        return Verdict(winner=winner, loser=loser, log="narration", reason=REASON_FALLBACK)

    def test_updates_ratings_records_and_inserts_battle(self):
        battle = record_battle(self.alpha, self.beta, self._verdict(self.alpha, self.beta))

        self.alpha.refresh_from_db()
        self.beta.refresh_from_db()
        self.assertEqual((self.alpha.elo, self.alpha.wins, self.alpha.losses), (1208, 1, 0))
        self.assertEqual((self.beta.elo, self.beta.wins, self.beta.losses), (992, 0, 1))
        self.assertEqual(battle.winner_id, self.alpha.id)
        self.assertEqual(battle.reason, REASON_FALLBACK)
        self.assertEqual(Battle.objects.count(), 1)

    def test_duplicate_pair_rolls_back_rating_changes(self):
        record_battle(self.alpha, self.beta, self._verdict(self.alpha, self.beta))
        self.alpha.refresh_from_db()
        self.beta.refresh_from_db()

        with self.assertRaises(BattleRecordError):
            record_battle(self.beta, self.alpha, self._verdict(self.beta, self.alpha))

        alpha = Character.objects.get(id=self.alpha.id)
        beta = Character.objects.get(id=self.beta.id)
        self.assertEqual((alpha.elo, alpha.wins, alpha.losses), (1208, 1, 0))
        self.assertEqual((beta.elo, beta.wins, beta.losses), (992, 0, 1))
        self.assertEqual(Battle.objects.count(), 1)


class RunBattleTests(TestCase):
    def setUp(self):
        self.config = ArenaConfig()
        self.alpha = _create("Alpha")
        self.beta = _create("Beta")

    def test_full_battle_with_fallback(self):
        outcome = run_battle(self.alpha.id, config=self.config)

        self.assertEqual(outcome.a.id, self.alpha.id)
        self.assertEqual(outcome.b.id, self.beta.id)
        self.assertEqual(outcome.verdict.winner.id, self.alpha.id)
        self.assertEqual((outcome.a.elo, outcome.a.wins), (1016, 1))
        self.assertEqual((outcome.b.elo, outcome.b.losses), (984, 1))
        payload = outcome.to_payload()
        self.assertEqual(payload["result"]["winner"], "Alpha")
        self.assertEqual(payload["result"]["winner_id"], self.alpha.id)
        self.assertEqual(payload["result"]["reason"], REASON_FALLBACK)
        self.assertTrue(payload["result"]["log"])
        self.assertEqual(Battle.objects.count(), 1)

    def test_judge_decides_when_available(self):
        config = ArenaConfig(judge_api_key="k")
        response = {"success": True, "content": '{"winner": "Beta", "log": "Beta strikes first."}'}
        with mock.patch("arena.judge.call_llm", return_value=response):
            outcome = run_battle(self.alpha.id, config=config)

        self.assertEqual(outcome.verdict.winner.id, self.beta.id)
        self.assertEqual(outcome.battle.reason, "judge")
        self.assertEqual(outcome.battle.log, "Beta strikes first.")
        self.assertEqual((outcome.b.elo, outcome.b.wins), (1016, 1))

    def test_second_battle_hits_cooldown_then_exhaustion(self):
        first = run_battle(self.alpha.id, config=self.config)

        with self.assertRaises(CooldownActive) as ctx:
            run_battle(self.alpha.id, config=self.config)
        self.assertGreater(ctx.exception.remain, 0)
        self.assertLessEqual(ctx.exception.remain, 60)

        later = first.battle.created_at + timedelta(seconds=61)
        with self.assertRaises(NoOpponentAvailable):
            run_battle(self.alpha.id, config=self.config, now=later)
        self.assertEqual(Battle.objects.count(), 1)
