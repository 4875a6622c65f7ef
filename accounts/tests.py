from io import StringIO

from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import Client, TestCase, override_settings

from arena.models import Character
from arena_backend.config import ArenaConfig

from .models import AdminAccount
from .sessions import COOKIE_NAME, SessionIdentity, issue_token, verify_token


class SessionTokenTests(TestCase):
    def setUp(self) -> None:
        self.config = ArenaConfig(session_secret="secret")

    def test_round_trip_identity(self) -> None:
        identity = SessionIdentity(role="character", name="Alpha", id=4)

        self.assertEqual(verify_token(issue_token(identity, self.config), self.config), identity)

    def test_rejects_tampered_wrong_key_and_expired_tokens(self) -> None:
        token = issue_token(SessionIdentity(role="admin", name="root"), self.config)

        self.assertIsNone(verify_token(token + "x", self.config))
        self.assertIsNone(verify_token(token, ArenaConfig(session_secret="other")))
        self.assertIsNone(verify_token(token, ArenaConfig(session_secret="secret", session_max_age=-1)))

    def test_missing_secret_disables_sessions(self) -> None:
        identity = SessionIdentity(role="admin", name="root")

        self.assertIsNone(issue_token(identity, ArenaConfig()))
        token = issue_token(identity, self.config)
        self.assertIsNone(verify_token(token, ArenaConfig()))


@override_settings(ARENA_SESSION_SECRET="test-secret")
class AuthAPITests(TestCase):
    def setUp(self) -> None:
        self.client = Client()
        self.admin = AdminAccount(name="root")
        self.admin.set_password("admin-pass")
        self.admin.save()
        self.character = Character(name="Alpha", description="Fast.")
        self.character.set_password("Neuron")
        self.character.save()

    def _login(self, name: str, password: str):
        return self.client.post(
            "/auth/login",
            data={"name": name, "password": password},
            content_type="application/json",
        )

    def test_admin_login(self) -> None:
        response = self._login("root", "admin-pass")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"ok": True, "role": "admin", "user": {"name": "root"}})
        me = self.client.get("/auth/me").json()
        self.assertEqual(me, {"user": {"name": "root", "role": "admin"}})

    def test_character_login_and_me(self) -> None:
        response = self._login("Alpha", "Neuron")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()["user"], {"id": self.character.id, "name": "Alpha"})
        cookie = response.cookies[COOKIE_NAME]
        self.assertTrue(cookie["httponly"])
        self.assertEqual(cookie["samesite"], "Lax")
        me = self.client.get("/auth/me").json()
        self.assertEqual(me["user"]["id"], self.character.id)
        self.assertNotIn("password_hash", me["user"])

    def test_bad_credentials(self) -> None:
        for name, password in [("root", "nope"), ("Alpha", "nope"), ("Ghost", "Neuron")]:
            with self.subTest(name=name):
                self.assertEqual(self._login(name, password).status_code, 401)

    def test_logout_clears_cookie(self) -> None:
        self._login("Alpha", "Neuron")

        response = self.client.post("/auth/logout")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.cookies[COOKIE_NAME].value, "")
        self.assertEqual(self.client.get("/auth/me").json(), {"user": None})

    def test_me_without_session(self) -> None:
        self.assertEqual(self.client.get("/auth/me").json(), {"user": None})

    def test_me_for_deleted_character(self) -> None:
        self.client.cookies[COOKIE_NAME] = issue_token(
            SessionIdentity(role="character", name="Alpha", id=self.character.id)
        )
        self.character.delete()

        self.assertEqual(self.client.get("/auth/me").json(), {"user": None})


class BootstrapAdminCommandTests(TestCase):
    def test_creates_once_and_never_overwrites(self) -> None:
        out = StringIO()
        call_command("bootstrap_admin", name="root", password="first", stdout=out)
        call_command("bootstrap_admin", name="root", password="second", stdout=out)

        account = AdminAccount.objects.get(name="root")
        self.assertEqual(AdminAccount.objects.count(), 1)
        self.assertTrue(account.check_password("first"))
        self.assertIn("already exists", out.getvalue())

    def test_requires_credentials(self) -> None:
        with self.assertRaises(CommandError):
            call_command("bootstrap_admin", name="", password="", stdout=StringIO())
