from unittest import mock

from django.db import IntegrityError
from django.test import Client, TestCase, override_settings

from accounts.sessions import COOKIE_NAME, SessionIdentity, issue_token
from arena.locks import BattleLockError
from arena.models import Battle, Character


@override_settings(ARENA_SESSION_SECRET="test-secret", LLM_API_KEY="")
class ArenaViewTestCase(TestCase):
    def setUp(self) -> None:
        self.client = Client()

    def create_character(self, name: str, elo: int = 1000, password: str = "") -> Character:
        character = Character(name=name, description=f"{name} has a plan.", elo=elo)
        if password:
            character.set_password(password)
        character.save()
        return character

    def login_as(self, identity: SessionIdentity) -> None:
        self.client.cookies[COOKIE_NAME] = issue_token(identity)

    def login_character(self, character: Character) -> None:
        self.login_as(SessionIdentity(role="character", name=character.name, id=character.id))


class BattleAPITests(ArenaViewTestCase):
    def test_requires_session(self) -> None:
        response = self.client.post("/battle")
        self.assertEqual(response.status_code, 401)

    def test_rejects_admin_session(self) -> None:
        self.login_as(SessionIdentity(role="admin", name="root"))

        response = self.client.post("/battle")

        self.assertEqual(response.status_code, 403)

    def test_rejects_get(self) -> None:
        response = self.client.get("/battle")
        self.assertEqual(response.status_code, 405)

    def test_successful_battle_returns_refreshed_characters(self) -> None:
        alpha = self.create_character("Alpha", elo=1200)
        beta = self.create_character("Beta", elo=1000)
        self.login_character(alpha)

        response = self.client.post("/battle")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["A"]["id"], alpha.id)
        self.assertEqual(payload["B"]["id"], beta.id)
        self.assertEqual(payload["A"]["elo"], 1208)
        self.assertEqual(payload["B"]["elo"], 992)
        self.assertEqual(payload["result"]["winner"], "Alpha")
        self.assertEqual(payload["result"]["winner_id"], alpha.id)
        self.assertEqual(payload["result"]["reason"], "fallback")
        self.assertTrue(payload["result"]["log"])
        self.assertNotIn("password_hash", payload["A"])
        self.assertEqual(Battle.objects.count(), 1)

    def test_cooldown_returns_remaining_seconds(self) -> None:
        alpha = self.create_character("Alpha")
        beta = self.create_character("Beta")
        self.create_character("Gamma")
        Battle.objects.create(a=alpha, b=beta, winner=alpha, reason="fallback", log="x")
        self.login_character(alpha)

        response = self.client.post("/battle")

        self.assertEqual(response.status_code, 429)
        payload = response.json()
        self.assertEqual(payload["error"], "cooldown")
        self.assertGreater(payload["remain"], 0)
        self.assertLessEqual(payload["remain"], 60)

    def test_no_available_opponent(self) -> None:
        alpha = self.create_character("Alpha")
        self.login_character(alpha)

        response = self.client.post("/battle")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.json(), {"error": "no available opponent"})

    def test_deleted_character_session(self) -> None:
        alpha = self.create_character("Alpha")
        self.login_character(alpha)
        alpha.delete()

        response = self.client.post("/battle")

        self.assertEqual(response.status_code, 404)

    def test_busy_lock_returns_service_unavailable(self) -> None:
        alpha = self.create_character("Alpha")
        self.create_character("Beta")
        self.login_character(alpha)

        with mock.patch(
            "arena.views.character_battle_lock",
            side_effect=BattleLockError("Another battle is in progress for this character."),
        ):
            response = self.client.post("/battle")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(Battle.objects.count(), 0)

    def test_failed_insert_returns_500_and_leaves_ratings_alone(self) -> None:
        alpha = self.create_character("Alpha", elo=1000)
        beta = self.create_character("Beta", elo=1000)
        self.login_character(alpha)

        with mock.patch("arena.services.Battle.objects.create", side_effect=IntegrityError("duplicate pair")):
            response = self.client.post("/battle")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "battle failed"})
        for character in (alpha, beta):
            character.refresh_from_db()
            self.assertEqual((character.elo, character.wins, character.losses), (1000, 0, 0))
        self.assertEqual(Battle.objects.count(), 0)

    def test_unexpected_error_returns_json_500(self) -> None:
        alpha = self.create_character("Alpha")
        self.create_character("Beta")
        self.login_character(alpha)

        with mock.patch("arena.views.run_battle", side_effect=RuntimeError("boom")), self.assertLogs(
            "arena.views", level="ERROR"
        ):
            response = self.client.post("/battle")

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response["Content-Type"], "application/json")
        self.assertEqual(response.json(), {"error": "battle failed"})

    def test_missing_secret_rejects_every_session(self) -> None:
        alpha = self.create_character("Alpha")
        self.create_character("Beta")
        self.login_character(alpha)

        with self.settings(ARENA_SESSION_SECRET=""):
            response = self.client.post("/battle")

        self.assertEqual(response.status_code, 401)
        self.assertEqual(Battle.objects.count(), 0)


class CharacterAPITests(ArenaViewTestCase):
    def test_lists_newest_first_without_credentials(self) -> None:
        first = self.create_character("First")
        second = self.create_character("Second")

        response = self.client.get("/characters")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual([c["id"] for c in payload], [second.id, first.id])
        self.assertNotIn("password_hash", payload[0])

    def test_anonymous_creation_is_refused_by_default(self) -> None:
        response = self.client.post(
            "/characters",
            data={"name": "Nova", "description": "Bright."},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 403)
        self.assertFalse(Character.objects.exists())

    @override_settings(ARENA_DEFAULT_PASSWORD="Neuron")
    def test_admin_creates_character_with_default_password(self) -> None:
        self.login_as(SessionIdentity(role="admin", name="root"))

        response = self.client.post(
            "/characters",
            data={"name": "  Nova ", "description": "Bright."},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        character = Character.objects.get(name="Nova")
        self.assertEqual(response.json()["id"], character.id)
        self.assertEqual((character.elo, character.wins, character.losses), (1000, 0, 0))
        self.assertTrue(character.check_password("Neuron"))
        self.assertIn(COOKIE_NAME, response.cookies)

    @override_settings(ARENA_DEFAULT_PASSWORD="Sparks")
    def test_default_password_follows_configuration(self) -> None:
        self.login_as(SessionIdentity(role="admin", name="root"))

        response = self.client.post(
            "/characters",
            data={"name": "Volt", "description": "Crackles."},
            content_type="application/json",
        )

        self.assertEqual(response.status_code, 200)
        character = Character.objects.get(name="Volt")
        self.assertTrue(character.check_password("Sparks"))
        self.assertFalse(character.check_password("Neuron"))

    @override_settings(ARENA_SELF_REGISTRATION=True)
    def test_self_registration_requires_password(self) -> None:
        response = self.client.post(
            "/characters",
            data={"name": "Nova", "description": "Bright."},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 400)

        response = self.client.post(
            "/characters",
            data={"name": "Nova", "description": "Bright.", "password": "s3cret"},
            content_type="application/json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(Character.objects.get(name="Nova").check_password("s3cret"))

    def test_validates_fields_and_duplicate_names(self) -> None:
        self.create_character("Nova")
        self.login_as(SessionIdentity(role="admin", name="root"))

        cases = [
            ({"name": "", "description": "x"}, 400),
            ({"name": "x" * 25, "description": "x"}, 400),
            ({"name": "Ok", "description": "x" * 101}, 400),
            ({"name": "Nova", "description": "again"}, 409),
        ]
        for body, status in cases:
            with self.subTest(body=body):
                response = self.client.post("/characters", data=body, content_type="application/json")
                self.assertEqual(response.status_code, status)


class LeaderboardAndRecordsAPITests(ArenaViewTestCase):
    def test_leaderboard_orders_by_elo_then_wins(self) -> None:
        low = self.create_character("Low", elo=900)
        tied_fewer = self.create_character("TiedFewer", elo=1100)
        tied_more = self.create_character("TiedMore", elo=1100)
        Character.objects.filter(id=tied_more.id).update(wins=3)

        response = self.client.get("/leaderboard")

        self.assertEqual(response.status_code, 200)
        self.assertEqual([c["id"] for c in response.json()], [tied_more.id, tied_fewer.id, low.id])

    def test_records_include_names_of_both_sides(self) -> None:
        alpha = self.create_character("Alpha")
        beta = self.create_character("Beta")
        gamma = self.create_character("Gamma")
        Battle.objects.create(a=alpha, b=beta, winner=alpha, reason="fallback", log="x")
        Battle.objects.create(a=gamma, b=beta, winner=gamma, reason="judge", log="y")

        response = self.client.get("/records", {"id": alpha.id})

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["user"]["id"], alpha.id)
        self.assertEqual(len(payload["battles"]), 1)
        self.assertEqual(payload["battles"][0]["a_name"], "Alpha")
        self.assertEqual(payload["battles"][0]["b_name"], "Beta")

    def test_records_validation(self) -> None:
        self.assertEqual(self.client.get("/records").status_code, 400)
        self.assertEqual(self.client.get("/records", {"id": "abc"}).status_code, 400)
        self.assertEqual(self.client.get("/records", {"id": 999}).status_code, 404)
