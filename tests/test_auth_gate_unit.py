# User value: These tests keep sign-in predictable: one local account per identity, generic rejections, fresh last-login.
import unittest
from unittest.mock import patch

from support_fakes import ApiHarness
from services.users import UserDirectory


class AuthGateUnitTests(unittest.TestCase):
    def setUp(self):
        self.h = ApiHarness().__enter__()

    def tearDown(self):
        self.h.__exit__(None, None, None)

    def test_missing_authorization_header_is_401(self):
        resp = self.h.client.get("/api/auth/me")
        self.assertEqual(resp.status_code, 401)
        body = resp.json()
        self.assertFalse(body["success"])
        self.assertEqual(body["message"], "Access token required")
        self.assertEqual(body["error_code"], "AUTH_MISSING_TOKEN")

    def test_malformed_authorization_header_is_401(self):
        resp = self.h.client.get("/api/auth/me", headers={"Authorization": "Token abc"})
        self.assertEqual(resp.status_code, 401)

    # User value: an invalid token never leaks why it was rejected.
    def test_invalid_token_gets_generic_message(self):
        resp = self.h.client.get("/api/auth/me", headers={"Authorization": "Bearer forged"})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.json()["message"], "Invalid or expired token")
        self.assertEqual(self.h.count_users(firebase_uid="forged"), 0)

    def test_first_sight_creates_exactly_one_user_account(self):
        headers = self.h.login("tok-new", "uid-new", "new.person@example.com")

        first = self.h.client.get("/api/auth/me", headers=headers)
        second = self.h.client.get("/api/auth/me", headers=headers)

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        user = first.json()["user"]
        self.assertEqual(user["uid"], "uid-new")
        self.assertEqual(user["email"], "new.person@example.com")
        self.assertEqual(user["role"], "user")
        self.assertEqual(user["username"], "new.person")
        self.assertEqual(self.h.count_users(firebase_uid="uid-new"), 1)
        self.assertEqual(second.json()["user"]["id"], user["id"])

    def test_last_login_never_moves_backwards(self):
        headers = self.h.login("tok-a", "uid-a", "a@example.com")
        self.h.client.get("/api/auth/me", headers=headers)
        before = self.h.directory.get_by_uid("uid-a")["last_login_at"]
        self.assertIsNotNone(before)

        self.h.client.get("/api/auth/me", headers=headers)
        after = self.h.directory.get_by_uid("uid-a")["last_login_at"]
        self.assertGreaterEqual(after, before)

    def test_disabled_account_is_forbidden(self):
        headers = self.h.login("tok-d", "uid-d", "d@example.com")
        self.h.directory.provision(uid="uid-d", email="d@example.com")
        self.h.directory.set_disabled("uid-d", True)

        resp = self.h.client.get("/api/auth/me", headers=headers)
        self.assertEqual(resp.status_code, 403)
        self.assertEqual(resp.json()["error_code"], "AUTH_USER_DISABLED")

    def test_verify_requires_token(self):
        resp = self.h.client.post("/api/auth/verify", json={})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Token is required")

    def test_verify_rejects_bad_token(self):
        resp = self.h.client.post("/api/auth/verify", json={"token": "nope"})
        self.assertEqual(resp.status_code, 401)

    def test_verify_returns_provisioned_user(self):
        self.h.login("tok-v", "uid-v", "v@example.com")
        resp = self.h.client.post("/api/auth/verify", json={"token": "tok-v"})
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertTrue(body["success"])
        self.assertEqual(body["user"]["uid"], "uid-v")
        self.assertEqual(body["user"]["role"], "user")
        self.assertEqual(self.h.count_users(firebase_uid="uid-v"), 1)

    def test_profile_reports_account_timestamps(self):
        headers = self.h.login("tok-p", "uid-p", "p@example.com")
        resp = self.h.client.get("/api/auth/user", headers=headers)
        self.assertEqual(resp.status_code, 200)
        user = resp.json()["user"]
        self.assertEqual(user["uid"], "uid-p")
        self.assertIsNotNone(user["createdAt"])

    def test_request_id_is_echoed(self):
        resp = self.h.client.get("/api/auth/me", headers={"X-Request-ID": "req-test-12345"})
        self.assertEqual(resp.headers.get("X-Request-ID"), "req-test-12345")
        self.assertEqual(resp.json()["request_id"], "req-test-12345")


class UserDirectoryProvisionTests(unittest.TestCase):
    def setUp(self):
        self.h = ApiHarness().__enter__()
        self.directory = UserDirectory(self.h.engine)

    def tearDown(self):
        self.h.__exit__(None, None, None)

    # User value: two simultaneous first logins still end with one account.
    def test_insert_conflict_reselects_existing_row(self):
        winner = self.directory.provision(uid="uid-race", email="race@example.com")
        real_lookup = self.directory.get_by_uid
        lookups = []

        def miss_first(uid):
            lookups.append(uid)
            return None if len(lookups) == 1 else real_lookup(uid)

        with patch.object(self.directory, "get_by_uid", side_effect=miss_first):
            loser = self.directory.provision(uid="uid-race", email="race@example.com")

        self.assertEqual(loser["id"], winner["id"])
        self.assertEqual(len(lookups), 2)
        self.assertEqual(self.h.count_users(firebase_uid="uid-race"), 1)

    def test_default_admin_bootstrap_is_idempotent(self):
        self.assertEqual(self.h.count_users(firebase_uid="admin-default"), 1)
        self.assertFalse(self.directory.ensure_default_admin())
        self.assertEqual(self.h.count_users(role="admin"), 1)


if __name__ == "__main__":
    unittest.main()
