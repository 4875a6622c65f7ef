from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from django.db import DatabaseError, transaction
from django.db.models import Q
from django.utils import timezone

from arena_backend.config import ArenaConfig

from .judge import Verdict, decide_battle
from .models import Battle, Character
from .rating import rate_win

logger = logging.getLogger(__name__)


class CooldownActive(Exception):
    """Raised when a character battled too recently."""

    def __init__(self, remain: int):
        super().__init__(f"Cooldown active for another {remain}s.")
        self.remain = remain


class NoOpponentAvailable(Exception):
    """Raised when every other character has already fought the requester."""


class BattleRecordError(Exception):
    """Raised when the rating update and battle insert could not be committed."""


@dataclass(slots=True)
class CooldownStatus:
    permitted: bool
    remain: int = 0


@dataclass(slots=True)
class BattleOutcome:
    a: Character
    b: Character
    battle: Battle
    verdict: Verdict

    def to_payload(self) -> dict:
        return {
            "A": self.a.to_payload(),
            "B": self.b.to_payload(),
            "result": {
                "winner": self.verdict.winner.name,
                "winner_id": self.verdict.winner.id,
                "reason": self.verdict.reason,
                "log": self.verdict.log,
            },
        }


def battles_involving(character_id: int):
    return Battle.objects.filter(Q(a_id=character_id) | Q(b_id=character_id))


def check_cooldown(
    character_id: int,
    now: Optional[datetime] = None,
    cooldown_seconds: int = 60,
) -> CooldownStatus:
    """Report whether ``character_id`` may battle at ``now``."""

    last_at = (
        battles_involving(character_id)
        .order_by("-created_at")
        .values_list("created_at", flat=True)
        .first()
    )
    if last_at is None:
        return CooldownStatus(permitted=True)

    now = now or timezone.now()
    ready_at = last_at + timedelta(seconds=cooldown_seconds)
    if now >= ready_at:
        return CooldownStatus(permitted=True)

    remain = max(math.ceil((ready_at - now).total_seconds()), 0)
    return CooldownStatus(permitted=False, remain=remain)


def select_opponent(character: Character) -> Character:
    """Pick a random character that has never fought ``character``."""

    opponent = (
        Character.objects.exclude(id=character.id)
        .exclude(id__in=Battle.objects.filter(a_id=character.id).values("b_id"))
        .exclude(id__in=Battle.objects.filter(b_id=character.id).values("a_id"))
        .order_by("?")
        .first()
    )
    if opponent is None:
        raise NoOpponentAvailable("No available opponent.")
    return opponent


def record_battle(
    a: Character,
    b: Character,
    verdict: Verdict,
    k_factor: int = 32,
) -> Battle:
    """Apply the rating change and insert the battle row as one transaction."""

    try:
        with transaction.atomic():
            locked = {
                row.id: row
                for row in Character.objects.select_for_update().filter(id__in=[a.id, b.id])
            }
            if len(locked) != 2:
                raise BattleRecordError("A participant no longer exists.")
            winner = locked[verdict.winner.id]
            loser = locked[verdict.loser.id]

            change = rate_win(winner.elo, loser.elo, k_factor)
            Character.objects.filter(id=winner.id).update(
                elo=change.winner_elo, wins=winner.wins + 1
            )
            Character.objects.filter(id=loser.id).update(
                elo=change.loser_elo, losses=loser.losses + 1
            )
            battle = Battle.objects.create(
                a_id=a.id,
                b_id=b.id,
                winner_id=winner.id,
                reason=verdict.reason,
                log=verdict.log,
            )
    except DatabaseError as exc:
        logger.error("Battle %s vs %s rolled back: %s", a.id, b.id, exc)
        raise BattleRecordError("Failed to record the battle.") from exc

    logger.info(
        "Battle %s: %s beat %s (%s, %+.1f)",
        battle.id,
        winner.name,
        loser.name,
        verdict.reason,
        change.winner_delta,
    )
    return battle


def run_battle(
    character_id: int,
    config: Optional[ArenaConfig] = None,
    now: Optional[datetime] = None,
) -> BattleOutcome:
    """Cooldown check, opponent draw, verdict, then the atomic record.

    Raises Character.DoesNotExist when ``character_id`` is gone.
    """

    config = config or ArenaConfig.from_settings()

    status = check_cooldown(character_id, now=now, cooldown_seconds=config.cooldown_seconds)
    if not status.permitted:
        raise CooldownActive(status.remain)

    a = Character.objects.get(id=character_id)
    b = select_opponent(a)
    verdict = decide_battle(a, b, config=config)
    battle = record_battle(a, b, verdict, k_factor=config.k_factor)

    a.refresh_from_db()
    b.refresh_from_db()
    return BattleOutcome(a=a, b=b, battle=battle, verdict=verdict)
