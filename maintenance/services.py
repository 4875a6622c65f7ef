"""Administrative operations over the whole game state."""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from django.db import connection, transaction
from django.utils import timezone

from arena.models import Battle, Character

logger = logging.getLogger(__name__)

CONFIRM_TOKEN = "YES"
DANGEROUS_ACTIONS = {"resetRatings", "wipeAll"}


class MaintenanceError(Exception):
    """Raised when a maintenance request is malformed or refused."""


def status() -> Dict[str, int]:
    return {
        "characters": Character.objects.count(),
        "battles": Battle.objects.count(),
    }


def backup(now=None) -> Dict[str, list]:
    """Copy both tables into ``<table>_backup_<yyyymmddHHMM>``."""

    suffix = (now or timezone.now()).strftime("%Y%m%d%H%M")
    created = []
    with transaction.atomic():
        with connection.cursor() as cursor:
            for model in (Character, Battle):
                source = model._meta.db_table
                target = f"{source}_backup_{suffix}"
                cursor.execute(
                    f"CREATE TABLE {connection.ops.quote_name(target)} AS "
                    f"SELECT * FROM {connection.ops.quote_name(source)}"
                )
                created.append(target)
    logger.info("Backed up game tables: %s", ", ".join(created))
    return {"backups": created}


def clear_battles() -> Dict[str, int]:
    deleted, _ = Battle.objects.all().delete()
    logger.info("Cleared %s battles", deleted)
    return {"deleted_battles": deleted}


def reset_ratings() -> Dict[str, bool]:
    with transaction.atomic():
        Character.objects.update(elo=1000, wins=0, losses=0)
        Battle.objects.all().delete()
    logger.info("Reset all ratings and battles")
    return {"done": True}


def wipe_all() -> Dict[str, bool]:
    with transaction.atomic():
        Battle.objects.all().delete()
        Character.objects.all().delete()
    logger.info("Wiped all characters and battles")
    return {"done": True}


def wipe_characters() -> int:
    """Delete every character; their battles go with them."""

    with transaction.atomic():
        deleted, per_model = Character.objects.all().delete()
    count = per_model.get(Character._meta.label, 0)
    logger.info("Deleted %s characters (%s rows in total)", count, deleted)
    return count


def delete_character(character_id: Optional[Any] = None, name: Optional[Any] = None) -> Dict[str, int]:
    if name:
        _, per_model = Character.objects.filter(name=str(name)).delete()
        return {"deleted_by_name": per_model.get(Character._meta.label, 0)}
    if character_id:
        try:
            pk = int(character_id)
        except (TypeError, ValueError) as exc:
            raise MaintenanceError("id must be an integer") from exc
        _, per_model = Character.objects.filter(id=pk).delete()
        return {"deleted_by_id": per_model.get(Character._meta.label, 0)}
    raise MaintenanceError("require id or name")


_ACTIONS: Dict[str, Callable[[Dict[str, Any]], Dict[str, Any]]] = {
    "status": lambda body: status(),
    "backup": lambda body: backup(),
    "clearBattles": lambda body: clear_battles(),
    "resetRatings": lambda body: reset_ratings(),
    "wipeAll": lambda body: wipe_all(),
    "deleteCharacter": lambda body: delete_character(body.get("id"), body.get("name")),
}


def run_action(body: Dict[str, Any]) -> Dict[str, Any]:
    action = str(body.get("action") or "")
    if action not in _ACTIONS:
        raise MaintenanceError(f"Unknown action: {action}")
    if action in DANGEROUS_ACTIONS and str(body.get("confirm") or "") != CONFIRM_TOKEN:
        raise MaintenanceError('Dangerous operation. Provide { "confirm": "YES" }')
    logger.info("Running maintenance action %s", action)
    return _ACTIONS[action](body)
