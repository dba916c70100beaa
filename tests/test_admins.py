"""Tests for admin status reads, the first-admin claim and admin/user relaying."""
import json
import unittest

import httpx

from order_relay.admins import AdminCoordinator, UserDirectory, normalize_admins
from order_relay.clients import UpstreamClient
from order_relay.errors import InvalidRequest, UpstreamHttpError, UpstreamRejected

from support import RecordingBackend, make_settings, run


def coordinator(backend, **overrides):
    return AdminCoordinator(UpstreamClient(make_settings(**overrides), transport=backend.transport()))


class TestCheckAdmin(unittest.TestCase):

    def test_admin(self):
        backend = RecordingBackend({"checkAdmin": {"ok": True, "isAdmin": True}})
        self.assertEqual(run(coordinator(backend).check_admin("U1")), {"ok": True, "isAdmin": True})

    def test_truthy_non_bool_is_not_admin(self):
        backend = RecordingBackend({"checkAdmin": {"ok": True, "isAdmin": "yes"}})
        self.assertEqual(run(coordinator(backend).check_admin("U1")), {"ok": True, "isAdmin": False})

    def test_empty_user_makes_no_call(self):
        backend = RecordingBackend({"checkAdmin": {"ok": True, "isAdmin": True}})
        self.assertEqual(run(coordinator(backend).check_admin("  ")), {"ok": False, "isAdmin": False})
        self.assertEqual(backend.calls, [])

    def test_failures_degrade_to_false(self):
        answers = [
            httpx.Response(500, text="boom"),
            httpx.Response(200, text="not json"),
            {"ok": False, "error": "bad_sig"},
            ["unexpected"],
        ]
        for answer in answers:
            backend = RecordingBackend({"checkAdmin": answer})
            self.assertEqual(run(coordinator(backend).check_admin("U1")), {"ok": False, "isAdmin": False})

    def test_transport_failure_and_missing_config_degrade(self):
        def handler(request):
            raise httpx.ConnectError("down", request=request)

        client = UpstreamClient(make_settings(), transport=httpx.MockTransport(handler))
        self.assertEqual(run(AdminCoordinator(client).check_admin("U1")), {"ok": False, "isAdmin": False})

        backend = RecordingBackend({})
        result = run(coordinator(backend, backend_url="").check_admin("U1"))
        self.assertEqual(result, {"ok": False, "isAdmin": False})


class TestCheckFirstAdmin(unittest.TestCase):

    def test_flag(self):
        backend = RecordingBackend({"checkFirstAdmin": {"ok": True, "hasAnyAdmin": False}})
        self.assertEqual(run(coordinator(backend).check_first_admin()), {"ok": True, "hasAnyAdmin": False})

    def test_derived_from_admin_list(self):
        backend = RecordingBackend({"checkFirstAdmin": {"ok": True, "admins": [{"userId": "U1"}]}})
        self.assertTrue(run(coordinator(backend).check_first_admin())["hasAnyAdmin"])

    def test_errors_propagate(self):
        backend = RecordingBackend({"checkFirstAdmin": httpx.Response(500)})
        with self.assertRaises(UpstreamHttpError):
            run(coordinator(backend).check_first_admin())


class TestRegisterFirstAdmin(unittest.TestCase):

    def test_success_rereads_status(self):
        backend = RecordingBackend({
            "registerFirstAdmin": {"ok": True},
            "checkAdmin": {"ok": True, "isAdmin": True},
        })
        result = run(coordinator(backend).register_first_admin(" U1 ", "Aki"))
        self.assertEqual(result, {"ok": True, "isAdmin": True})
        self.assertEqual(backend.actions(), ["registerFirstAdmin", "checkAdmin"])
        body = json.loads(backend.calls[0][2].content)
        self.assertEqual(body["userId"], "U1")
        self.assertEqual(body["displayName"], "Aki")

    def test_ack_without_visibility_reports_read_back(self):
        backend = RecordingBackend({
            "registerFirstAdmin": {"ok": True, "isAdmin": True},
            "checkAdmin": {"ok": True, "isAdmin": False},
        })
        self.assertEqual(run(coordinator(backend).register_first_admin("U1")), {"ok": True, "isAdmin": False})

    def test_backend_refusal(self):
        backend = RecordingBackend({"registerFirstAdmin": {"ok": False, "error": "admin_exists"}})
        with self.assertRaises(UpstreamRejected) as ctx:
            run(coordinator(backend).register_first_admin("U2"))
        self.assertEqual(ctx.exception.code, "admin_exists")
        self.assertEqual(backend.actions(), ["registerFirstAdmin"])

    def test_backend_free_text_is_not_forwarded(self):
        backend = RecordingBackend({
            "registerFirstAdmin": {"ok": False, "error": "Exception: Sheet 'Admins' not found at line 40"},
        })
        with self.assertRaises(UpstreamRejected) as ctx:
            run(coordinator(backend).register_first_admin("U2"))
        self.assertEqual(ctx.exception.code, "upstream_rejected")

    def test_missing_ok_is_rejection(self):
        backend = RecordingBackend({"registerFirstAdmin": {"result": "done"}})
        with self.assertRaises(UpstreamRejected):
            run(coordinator(backend).register_first_admin("U1"))

    def test_empty_user_rejected_locally(self):
        backend = RecordingBackend({})
        with self.assertRaises(InvalidRequest):
            run(coordinator(backend).register_first_admin(""))
        self.assertEqual(backend.calls, [])


class TestAdminMutations(unittest.TestCase):

    def test_add_and_remove_forward_target(self):
        backend = RecordingBackend({"addAdmin": {"ok": True}, "removeAdmin": {"ok": True}})
        admins = coordinator(backend)
        self.assertEqual(run(admins.add_admin("U5")), {"ok": True})
        self.assertEqual(run(admins.remove_admin("U5")), {"ok": True})
        self.assertEqual(backend.actions(), ["addAdmin", "removeAdmin"])
        self.assertEqual(json.loads(backend.calls[0][2].content)["targetUserId"], "U5")

    def test_backend_verdict_surfaces(self):
        backend = RecordingBackend({"removeAdmin": {"ok": False, "error": "forbidden"}})
        with self.assertRaises(UpstreamRejected) as ctx:
            run(coordinator(backend).remove_admin("U5"))
        self.assertEqual(ctx.exception.code, "forbidden")

    def test_missing_target(self):
        backend = RecordingBackend({})
        with self.assertRaises(InvalidRequest):
            run(coordinator(backend).add_admin(None))
        self.assertEqual(backend.calls, [])

    def test_list_admins(self):
        backend = RecordingBackend({"getAdmins": {"ok": True, "admins": [["U1", "Aki"], ["", "nobody"]]}})
        result = run(coordinator(backend).list_admins())
        self.assertEqual([a.model_dump() for a in result["admins"]], [{"userId": "U1", "displayName": "Aki"}])


class TestNormalizeAdmins(unittest.TestCase):

    def test_records_with_aliases(self):
        admins = normalize_admins([{"userId": "U1", "displayName": "Aki"}, {"id": 42, "name": "Ken"}, "x"])
        self.assertEqual([(a.userId, a.displayName) for a in admins], [("U1", "Aki"), ("42", "Ken")])

    def test_rows(self):
        admins = normalize_admins([["U1"], ["U2", "Mio", "extra"]])
        self.assertEqual([(a.userId, a.displayName) for a in admins], [("U1", ""), ("U2", "Mio")])

    def test_unknown(self):
        self.assertEqual(normalize_admins(None), [])
        self.assertEqual(normalize_admins({"U1": "Aki"}), [])


class TestUserDirectory(unittest.TestCase):

    def _users(self, backend):
        return UserDirectory(UpstreamClient(make_settings(), transport=backend.transport()))

    def test_list_users(self):
        backend = RecordingBackend({"getUsers": {"ok": True, "users": [{"userId": "U1"}]}})
        self.assertEqual(run(self._users(backend).list_users()), {"ok": True, "users": [{"userId": "U1"}]})

        backend = RecordingBackend({"getUsers": {"ok": True, "users": "broken"}})
        self.assertEqual(run(self._users(backend).list_users()), {"ok": True, "users": []})

    def test_record_user(self):
        backend = RecordingBackend({"recordUser": {"ok": True}})
        self.assertEqual(run(self._users(backend).record_user("U1", "Aki")), {"ok": True})
        self.assertEqual(backend.calls[0][0], "GET")

    def test_record_user_requires_id(self):
        backend = RecordingBackend({})
        with self.assertRaises(InvalidRequest):
            run(self._users(backend).record_user(""))
