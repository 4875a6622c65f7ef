from __future__ import annotations

from django.contrib.auth.hashers import check_password, make_password
from django.db import models
from django.db.models import F, Q


class Character(models.Model):
    """A player-controlled fighter with a rating and a win/loss record."""

    name = models.CharField(max_length=24, unique=True)
    description = models.CharField(max_length=100)
    password_hash = models.CharField(max_length=128, blank=True)
    elo = models.IntegerField(default=1000)
    wins = models.PositiveIntegerField(default=0)
    losses = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-id"]

    def __str__(self) -> str:
        return f"{self.name} (elo={self.elo})"

    def set_password(self, raw_password: str) -> None:
        self.password_hash = make_password(raw_password)

    def check_password(self, raw_password: str) -> bool:
        if not self.password_hash:
            return False
        return check_password(raw_password, self.password_hash)

    def to_payload(self) -> dict[str, int | str]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "elo": self.elo,
            "wins": self.wins,
            "losses": self.losses,
            "created_at": self.created_at.isoformat(),
        }


class Battle(models.Model):
    """One resolved contest. Rows are never updated after insertion."""

    a = models.ForeignKey(Character, on_delete=models.CASCADE, related_name="battles_as_a")
    b = models.ForeignKey(Character, on_delete=models.CASCADE, related_name="battles_as_b")
    winner = models.ForeignKey(
        Character,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="battles_won",
    )
    # Sorted copy of (a, b); the unique key for the unordered pair.
    pair_low = models.BigIntegerField(editable=False)
    pair_high = models.BigIntegerField(editable=False)
    reason = models.CharField(max_length=32)
    log = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        constraints = [
            models.UniqueConstraint(
                fields=["pair_low", "pair_high"],
                name="arena_battle_pair_unique",
            ),
            models.CheckConstraint(
                condition=~Q(a=F("b")),
                name="arena_battle_distinct_sides",
            ),
        ]

    def save(self, *args, **kwargs):
        self.pair_low, self.pair_high = sorted((self.a_id, self.b_id))
        super().save(*args, **kwargs)

    def __str__(self) -> str:
        return f"Battle #{self.pk}: {self.a_id} vs {self.b_id}"

    def to_payload(self) -> dict[str, int | str | None]:
        payload = {
            "id": self.id,
            "a_id": self.a_id,
            "b_id": self.b_id,
            "winner_id": self.winner_id,
            "reason": self.reason,
            "log": self.log,
            "created_at": self.created_at.isoformat(),
        }
        # Annotated by the records query.
        for extra in ("a_name", "b_name"):
            if hasattr(self, extra):
                payload[extra] = getattr(self, extra)
        return payload
