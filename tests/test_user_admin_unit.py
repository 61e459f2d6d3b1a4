import unittest

from support_fakes import ApiHarness


class UserAdminUnitTests(unittest.TestCase):
    def setUp(self):
        self.h = ApiHarness().__enter__()
        self.admin = self.h.login("tok-admin", "uid-admin", "boss@example.com", role="admin")
        self.member = self.h.login("tok-member", "uid-member", "member@example.com")
        self.h.directory.provision(uid="uid-member", email="member@example.com")

    def tearDown(self):
        self.h.__exit__(None, None, None)

    # User value: regular users cannot touch other accounts.
    def test_non_admin_gets_403_and_nothing_changes(self):
        calls = [
            ("get", "/api/auth/users", None),
            ("get", "/api/auth/users/stats", None),
            ("put", "/api/auth/users/uid-admin/role", {"role": "user"}),
            ("post", "/api/auth/set-role", {"uid": "uid-member", "role": "admin"}),
            ("put", "/api/auth/users/uid-admin/status", {"disabled": True}),
            ("delete", "/api/auth/users/uid-admin", None),
        ]
        for method, path, body in calls:
            kwargs = {"headers": self.member}
            if body is not None:
                kwargs["json"] = body
            resp = getattr(self.h.client, method)(path, **kwargs)
            self.assertEqual(resp.status_code, 403, path)
            self.assertEqual(resp.json()["message"], "Admin access required")

        admin_row = self.h.directory.get_by_uid("uid-admin")
        self.assertEqual(admin_row["role"], "admin")
        self.assertFalse(admin_row["disabled"])
        self.assertEqual(self.h.directory.get_by_uid("uid-member")["role"], "user")

    def test_admin_cannot_disable_or_delete_self(self):
        resp = self.h.client.put("/api/auth/users/uid-admin/status", json={"disabled": True}, headers=self.admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Cannot disable your own account")

        resp = self.h.client.delete("/api/auth/users/uid-admin", headers=self.admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(resp.json()["message"], "Cannot delete your own account")

        row = self.h.directory.get_by_uid("uid-admin")
        self.assertIsNotNone(row)
        self.assertFalse(row["disabled"])

    def test_admin_lists_users_and_stats(self):
        resp = self.h.client.get("/api/auth/users", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        uids = {u["uid"] for u in body["users"]}
        self.assertTrue({"uid-admin", "uid-member", "admin-default"} <= uids)
        self.assertEqual(body["total"], len(body["users"]))

        stats = self.h.client.get("/api/auth/users/stats", headers=self.admin).json()["stats"]
        self.assertEqual(stats["totalUsers"], 3)
        self.assertEqual(stats["adminUsers"], 2)
        self.assertEqual(stats["disabledUsers"], 0)
        self.assertEqual(stats["activeUsers"], 3)

    def test_admin_updates_role(self):
        resp = self.h.client.put("/api/auth/users/uid-member/role", json={"role": "admin"}, headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.h.directory.get_by_uid("uid-member")["role"], "admin")

        resp = self.h.client.post("/api/auth/set-role", json={"uid": "uid-member", "role": "user"}, headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.h.directory.get_by_uid("uid-member")["role"], "user")

    def test_invalid_role_is_rejected(self):
        resp = self.h.client.put("/api/auth/users/uid-member/role", json={"role": "root"}, headers=self.admin)
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.h.directory.get_by_uid("uid-member")["role"], "user")

    def test_unknown_target_is_404(self):
        resp = self.h.client.put("/api/auth/users/ghost/status", json={"disabled": True}, headers=self.admin)
        self.assertEqual(resp.status_code, 404)
        resp = self.h.client.delete("/api/auth/users/ghost", headers=self.admin)
        self.assertEqual(resp.status_code, 404)

    def test_disable_then_delete_member(self):
        resp = self.h.client.put("/api/auth/users/uid-member/status", json={"disabled": True}, headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["message"], "User disabled successfully")
        self.assertEqual(self.h.client.get("/api/auth/me", headers=self.member).status_code, 403)

        resp = self.h.client.delete("/api/auth/users/uid-member", headers=self.admin)
        self.assertEqual(resp.status_code, 200)
        self.assertIsNone(self.h.directory.get_by_uid("uid-member"))

    def test_user_can_read_self_but_not_others(self):
        resp = self.h.client.get("/api/auth/users/uid-member", headers=self.member)
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.json()["user"]["displayName"], "member")

        resp = self.h.client.get("/api/auth/users/uid-admin", headers=self.member)
        self.assertEqual(resp.status_code, 403)


if __name__ == "__main__":
    unittest.main()
