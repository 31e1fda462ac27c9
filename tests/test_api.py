"""Integration tests for the HTTP API (FastAPI TestClient over an in-memory store)."""

import unittest

from fastapi.testclient import TestClient

from app.core.config import settings
from app.core.security import BcryptHasher
from app.main import create_app
from app.services.auth_service import AuthService
from app.services.storage import InMemoryKeyValueStore

PREFIX = settings.API_V1_PREFIX
SEED_PASSWORD = settings.SEED_DEFAULT_PASSWORD.get_secret_value()


def _client() -> TestClient:
    service = AuthService(InMemoryKeyValueStore(), hasher=BcryptHasher(rounds=4))
    return TestClient(create_app(service))


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _new_user_body(username: str = "jdoe", role: str = "planner") -> dict[str, str]:
    return {
        "username": username,
        "password": "s3cret-pass",
        "display_name": "Jane Doe",
        "email": "jdoe@example.com",
        "role": role,
    }


class ApiTestCase(unittest.TestCase):

    def setUp(self) -> None:
        self.client = self.enterContext(_client())

    def login(self, username: str, password: str = SEED_PASSWORD) -> str:
        resp = self.client.post(f"{PREFIX}/auth", json={"username": username, "password": password})
        self.assertEqual(resp.status_code, 200, resp.text)
        return resp.json()["access_token"]


class TestLoginEndpoint(ApiTestCase):

    def test_login_returns_token_and_redirect(self) -> None:
        resp = self.client.post(f"{PREFIX}/auth", json={"username": "admin", "password": SEED_PASSWORD})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["token_type"], "bearer")
        self.assertEqual(body["redirect_to"], settings.LOGIN_REDIRECT_PATH)
        self.assertEqual(body["user"]["role"], "admin")
        self.assertNotIn("password", body["user"])

    def test_failures_are_indistinguishable(self) -> None:
        wrong = self.client.post(f"{PREFIX}/auth", json={"username": "admin", "password": "wrong-pass"})
        unknown = self.client.post(f"{PREFIX}/auth", json={"username": "ghost", "password": "wrong-pass"})
        self.assertEqual(wrong.status_code, 401)
        self.assertEqual(unknown.status_code, 401)
        self.assertEqual(wrong.json(), unknown.json())
        self.assertEqual(wrong.json()["detail"]["kind"], "invalid_credentials")

    def test_short_password_fails_like_any_wrong_password(self) -> None:
        short = self.client.post(f"{PREFIX}/auth", json={"username": "admin", "password": "x"})
        wrong = self.client.post(f"{PREFIX}/auth", json={"username": "admin", "password": "wrong-pass"})
        self.assertEqual(short.status_code, 401)
        self.assertEqual(short.json(), wrong.json())

    def test_empty_password_is_rejected_by_validation(self) -> None:
        resp = self.client.post(f"{PREFIX}/auth", json={"username": "admin", "password": ""})
        self.assertEqual(resp.status_code, 422)

    def test_me(self) -> None:
        token = self.login("rh")
        resp = self.client.get(f"{PREFIX}/auth/me", headers=_auth(token))
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["username"], "rh")

    def test_me_requires_token(self) -> None:
        self.assertEqual(self.client.get(f"{PREFIX}/auth/me").status_code, 401)
        resp = self.client.get(f"{PREFIX}/auth/me", headers=_auth("not-a-jwt"))
        self.assertEqual(resp.status_code, 401)


class TestLogoutEndpoint(ApiTestCase):

    def test_logout_ends_session_and_is_idempotent(self) -> None:
        token = self.login("admin")
        first = self.client.post(f"{PREFIX}/auth/logout", headers=_auth(token))
        self.assertEqual(first.status_code, 200)
        self.assertEqual(first.json()["redirect_to"], settings.LOGOUT_REDIRECT_PATH)
        self.assertEqual(self.client.get(f"{PREFIX}/auth/me", headers=_auth(token)).status_code, 401)
        second = self.client.post(f"{PREFIX}/auth/logout", headers=_auth(token))
        self.assertEqual(second.status_code, 200)

    def test_anonymous_logout(self) -> None:
        self.assertEqual(self.client.post(f"{PREFIX}/auth/logout").status_code, 200)


class TestPermissionEndpoints(ApiTestCase):

    def check_route(self, token: str, path: str) -> bool:
        resp = self.client.get(
            f"{PREFIX}/auth/permissions/routes", params={"path": path}, headers=_auth(token)
        )
        self.assertEqual(resp.status_code, 200)
        return resp.json()["allowed"]

    def test_route_checks(self) -> None:
        token = self.login("chh")
        self.assertTrue(self.check_route(token, "/maintenance"))
        self.assertTrue(self.check_route(token, "/vehicles"))
        self.assertFalse(self.check_route(token, "/users"))

    def test_route_check_anonymous(self) -> None:
        resp = self.client.get(f"{PREFIX}/auth/permissions/routes", params={"path": "/"})
        self.assertEqual(resp.status_code, 200)
        self.assertFalse(resp.json()["allowed"])

    def test_action_checks(self) -> None:
        token = self.login("cl")
        allowed = self.client.get(f"{PREFIX}/auth/permissions/actions/add-order", headers=_auth(token))
        denied = self.client.get(f"{PREFIX}/auth/permissions/actions/add-user", headers=_auth(token))
        unknown = self.client.get(f"{PREFIX}/auth/permissions/actions/fly", headers=_auth(token))
        self.assertTrue(allowed.json()["allowed"])
        self.assertFalse(denied.json()["allowed"])
        self.assertFalse(unknown.json()["allowed"])


class TestUsersEndpoints(ApiTestCase):

    def test_crud_as_admin(self) -> None:
        headers = _auth(self.login("admin"))
        created = self.client.post(f"{PREFIX}/users", json=_new_user_body(), headers=headers)
        self.assertEqual(created.status_code, 201, created.text)
        user_id = created.json()["id"]
        self.assertNotIn("password", created.json())

        listed = self.client.get(f"{PREFIX}/users", headers=headers).json()["users"]
        self.assertIn("jdoe", {u["username"] for u in listed})

        patched = self.client.patch(f"{PREFIX}/users/{user_id}", json={"city": "Tanger"}, headers=headers)
        self.assertEqual(patched.status_code, 200)
        self.assertEqual(patched.json()["city"], "Tanger")

        self.assertEqual(self.client.delete(f"{PREFIX}/users/{user_id}", headers=headers).status_code, 204)
        again = self.client.delete(f"{PREFIX}/users/{user_id}", headers=headers)
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json()["detail"]["kind"], "not_found")

    def test_created_user_can_log_in(self) -> None:
        headers = _auth(self.login("admin"))
        self.client.post(f"{PREFIX}/users", json=_new_user_body(), headers=headers)
        self.login("jdoe", "s3cret-pass")

    def test_duplicate_username(self) -> None:
        headers = _auth(self.login("admin"))
        resp = self.client.post(f"{PREFIX}/users", json=_new_user_body("rh", "hr"), headers=headers)
        self.assertEqual(resp.status_code, 409)
        self.assertEqual(resp.json()["detail"]["kind"], "duplicate_username")

    def test_non_admin_is_forbidden(self) -> None:
        headers = _auth(self.login("rh"))
        resp = self.client.post(f"{PREFIX}/users", json=_new_user_body(), headers=headers)
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["detail"]["kind"], "permission_denied")

    def test_anonymous_is_unauthorized(self) -> None:
        self.assertEqual(self.client.get(f"{PREFIX}/users").status_code, 401)

    def test_unknown_update_field_rejected(self) -> None:
        headers = _auth(self.login("admin"))
        user_id = self.client.get(f"{PREFIX}/users", headers=headers).json()["users"][0]["id"]
        resp = self.client.patch(f"{PREFIX}/users/{user_id}", json={"id": "x"}, headers=headers)
        self.assertEqual(resp.status_code, 422)


class TestHealthEndpoint(ApiTestCase):

    def test_health(self) -> None:
        self.login("admin")
        resp = self.client.get(f"{PREFIX}/health/")
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["storage"], "connected")
        self.assertEqual(body["active_sessions"], 1)


if __name__ == "__main__":
    unittest.main()
