from django.db import connection
from django.test import Client, TestCase, override_settings

from accounts.sessions import COOKIE_NAME, SessionIdentity, issue_token
from arena.models import Battle, Character


@override_settings(ARENA_SESSION_SECRET="test-secret")
class MaintenanceAPITests(TestCase):
    def setUp(self) -> None:
        self.client = Client()
        self.alpha = Character.objects.create(name="Alpha", description="a", elo=1100, wins=2)
        self.beta = Character.objects.create(name="Beta", description="b", elo=900, losses=2)
        self.gamma = Character.objects.create(name="Gamma", description="c")
        Battle.objects.create(a=self.alpha, b=self.beta, winner=self.alpha, reason="fallback", log="x")
        Battle.objects.create(a=self.gamma, b=self.beta, winner=self.gamma, reason="judge", log="y")

    def login_admin(self) -> None:
        self.client.cookies[COOKIE_NAME] = issue_token(SessionIdentity(role="admin", name="root"))

    def post(self, path: str, body: dict):
        return self.client.post(path, data=body, content_type="application/json")

    def test_requires_admin_session(self) -> None:
        response = self.post("/admin/maintenance", {"action": "status"})
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json(), {"ok": False, "error": "admin only"})

        self.client.cookies[COOKIE_NAME] = issue_token(
            SessionIdentity(role="character", name="Alpha", id=self.alpha.id)
        )
        response = self.post("/admin/maintenance", {"action": "status"})
        self.assertEqual(response.status_code, 403)

    def test_status_counts(self) -> None:
        self.login_admin()

        response = self.post("/admin/maintenance", {"action": "status"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True, "characters": 3, "battles": 2})

    def test_unknown_action(self) -> None:
        self.login_admin()

        response = self.post("/admin/maintenance", {"action": "dropAll"})

        self.assertEqual(response.status_code, 400)
        self.assertIn("Unknown action", response.json()["error"])

    def test_dangerous_actions_need_confirmation(self) -> None:
        self.login_admin()

        for action in ("resetRatings", "wipeAll"):
            with self.subTest(action=action):
                response = self.post("/admin/maintenance", {"action": action})
                self.assertEqual(response.status_code, 400)
        self.assertEqual(Character.objects.count(), 3)
        self.assertEqual(Battle.objects.count(), 2)

    def test_clear_battles_keeps_ratings(self) -> None:
        self.login_admin()

        response = self.post("/admin/maintenance", {"action": "clearBattles"})

        self.assertEqual(response.json(), {"ok": True, "deleted_battles": 2})
        self.alpha.refresh_from_db()
        self.assertEqual(self.alpha.elo, 1100)

    def test_reset_ratings(self) -> None:
        self.login_admin()

        response = self.post("/admin/maintenance", {"action": "resetRatings", "confirm": "YES"})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Battle.objects.exists())
        self.assertEqual(
            set(Character.objects.values_list("elo", "wins", "losses")),
            {(1000, 0, 0)},
        )

    def test_wipe_all(self) -> None:
        self.login_admin()

        response = self.post("/admin/maintenance", {"action": "wipeAll", "confirm": "YES"})

        self.assertEqual(response.status_code, 200)
        self.assertFalse(Character.objects.exists())
        self.assertFalse(Battle.objects.exists())

    def test_delete_character_cascades_battles(self) -> None:
        self.login_admin()

        response = self.post("/admin/maintenance", {"action": "deleteCharacter", "name": "Beta"})

        self.assertEqual(response.json(), {"ok": True, "deleted_by_name": 1})
        self.assertFalse(Battle.objects.exists())

        response = self.post("/admin/maintenance", {"action": "deleteCharacter", "id": self.gamma.id})
        self.assertEqual(response.json(), {"ok": True, "deleted_by_id": 1})

        response = self.post("/admin/maintenance", {"action": "deleteCharacter"})
        self.assertEqual(response.status_code, 400)

    def test_deleting_winner_keeps_battle_without_winner(self) -> None:
        self.login_admin()
        Battle.objects.filter(b=self.beta).delete()
        delta = Character.objects.create(name="Delta", description="d")
        battle = Battle.objects.create(a=delta, b=self.alpha, winner=self.gamma, reason="judge", log="z")

        self.post("/admin/maintenance", {"action": "deleteCharacter", "id": self.gamma.id})

        battle.refresh_from_db()
        self.assertIsNone(battle.winner_id)

    def test_backup_copies_tables(self) -> None:
        self.login_admin()

        response = self.post("/admin/maintenance", {"action": "backup"})

        self.assertEqual(response.status_code, 200)
        backups = response.json()["backups"]
        self.assertEqual(len(backups), 2)
        self.assertTrue(backups[0].startswith("arena_character_backup_"))
        with connection.cursor() as cursor:
            cursor.execute(f"SELECT COUNT(*) FROM {connection.ops.quote_name(backups[0])}")
            self.assertEqual(cursor.fetchone()[0], 3)

    def test_wipe_characters_endpoint(self) -> None:
        self.login_admin()

        refused = self.post("/admin/wipe-characters", {})
        self.assertEqual(refused.status_code, 400)

        response = self.post("/admin/wipe-characters", {"confirm": "YES"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["deleted"], 3)
        self.assertFalse(Character.objects.exists())
        self.assertFalse(Battle.objects.exists())
