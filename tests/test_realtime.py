import json
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

from fastapi.testclient import TestClient

from agap.auth.utils import create_access_token
from agap.realtime import manager as realtime_manager
from agap.realtime import utils as realtime_utils
from agap.realtime.utils import (
    ConnectionManager, InvalidFilter, RowFilter, Subscription, SubscriptionRefused, matches, parse_filter,
    subscription_scope,
)
from helpers import ADMIN, CITIZEN, OTHER_USER_ID, RESPONDER, USER_ID, run
from main import app


class FakeSocket:
    def __init__(self, broken=False):
        self.sent = []
        self.broken = broken

    async def send_json(self, payload):
        if self.broken:
            raise RuntimeError("socket closed")
        self.sent.append(payload)


class FilterTests(unittest.TestCase):
    def test_parse_filter(self):
        self.assertEqual(parse_filter("status=eq.pending"), RowFilter("status", "eq", "pending"))
        self.assertEqual(parse_filter("id=in.(a, b,c)"), RowFilter("id", "in", ("a", "b", "c")))
        self.assertIsNone(parse_filter(None))

    def test_parse_filter_rejects_garbage(self):
        for expression in ("status", "status=like.pend%", "=eq.x", "status=eq"):
            with self.assertRaises(InvalidFilter):
                parse_filter(expression)

    def test_matches(self):
        record = {"status": "pending", "victim_age": 34}
        self.assertTrue(matches(parse_filter("status=eq.pending"), record))
        self.assertFalse(matches(parse_filter("status=neq.pending"), record))
        self.assertTrue(matches(parse_filter("victim_age=gte.18"), record))
        self.assertFalse(matches(parse_filter("victim_age=lt.10"), record))
        self.assertTrue(matches(parse_filter("status=in.(pending,accepted)"), record))
        self.assertFalse(matches(parse_filter("missing=eq.x"), record))
        self.assertTrue(matches(None, record))


class ConnectionManagerTests(unittest.TestCase):
    def test_only_matching_subscribers_receive_changes(self):
        manager = ConnectionManager()
        pending_watcher, all_watcher, report_watcher = FakeSocket(), FakeSocket(), FakeSocket()

        async def scenario():
            await manager.connect(pending_watcher, Subscription("alerts", "*", parse_filter("status=eq.pending")))
            await manager.connect(all_watcher, Subscription("alerts", "UPDATE"))
            await manager.connect(report_watcher, Subscription("reports", "*"))
            await manager.broadcast("alerts", "INSERT", {"n": 1}, new={"status": "pending"})
            await manager.broadcast("alerts", "UPDATE", {"n": 2}, new={"status": "accepted"},
                                    old={"status": "pending"})

        run(scenario())
        self.assertEqual(pending_watcher.sent, [{"n": 1}])
        self.assertEqual(all_watcher.sent, [{"n": 2}])
        self.assertEqual(report_watcher.sent, [])

    def test_delete_events_filter_on_old_row(self):
        manager = ConnectionManager()
        watcher = FakeSocket()

        async def scenario():
            await manager.connect(watcher, Subscription("alerts", "DELETE", parse_filter("status=eq.pending")))
            return await manager.broadcast("alerts", "DELETE", {"gone": True}, new=None, old={"status": "pending"})

        self.assertEqual(run(scenario()), 1)

    def test_broken_sockets_are_dropped(self):
        manager = ConnectionManager()
        broken = FakeSocket(broken=True)

        async def scenario():
            await manager.connect(broken, Subscription("alerts"))
            await manager.broadcast("alerts", "INSERT", {}, new={})

        run(scenario())
        self.assertEqual(manager.subscriber_count(), 0)


class PublishAndPushTests(unittest.TestCase):
    def test_publish_change_payload(self):
        with patch.object(realtime_manager.manager, "broadcast", new_callable=AsyncMock) as mock_broadcast:
            mock_broadcast.return_value = 0
            run(realtime_manager.publish_change("alerts", "UPDATE", new={"id": "a", "status": "accepted"},
                                                old={"id": "a", "status": "pending"}))
        table, event, payload = mock_broadcast.call_args.args
        self.assertEqual((table, event), ("alerts", "UPDATE"))
        self.assertEqual(payload["schema"], "public")
        self.assertEqual(payload["new"]["status"], "accepted")
        self.assertEqual(payload["old"]["status"], "pending")
        self.assertIn("commit_timestamp", payload)

    def test_push_message_text(self):
        message = realtime_manager.build_push_message(
            "alerts", {"id": "a", "location_name": "Jaro Plaza", "latitude": 10.7, "longitude": 122.5}, ["tok"])
        self.assertEqual(message.notification.title, "Emergency Alert - AGAP")
        self.assertEqual(message.notification.body, "New emergency alert at Jaro Plaza")
        self.assertEqual(message.data["type"], "alert")

    @patch("agap.realtime.manager.get_responder_fcm_tokens", new_callable=AsyncMock)
    def test_push_skipped_without_firebase(self, mock_tokens):
        with patch.object(realtime_manager, "firebase_ready", return_value=False):
            run(realtime_manager.notify_responders("alerts", {"id": "a"}))
        mock_tokens.assert_not_awaited()

    @patch("agap.realtime.manager.messaging.send_each_for_multicast")
    @patch("agap.realtime.manager.get_responder_fcm_tokens", new_callable=AsyncMock)
    def test_push_sent_to_responder_tokens(self, mock_tokens, mock_send):
        mock_tokens.return_value = ["tok-1", "tok-2"]
        mock_send.return_value = MagicMock(success_count=2, failure_count=0)
        with patch.object(realtime_manager, "firebase_ready", return_value=True):
            run(realtime_manager.notify_responders("reports", {"id": "r", "location_name": None,
                                                               "latitude": 10.7, "longitude": 122.5}))
        message = mock_send.call_args.args[0]
        self.assertEqual(message.tokens, ["tok-1", "tok-2"])
        self.assertEqual(message.notification.body, "New emergency report at 10.7, 122.5")

class SubscriptionAccessTests(unittest.TestCase):
    def test_staff_see_incident_tables_in_full(self):
        for table in ("alerts", "reports", "responder_assignments"):
            self.assertIsNone(subscription_scope(table, RESPONDER))
            self.assertIsNone(subscription_scope(table, ADMIN))
        self.assertIsNone(subscription_scope("responder_profiles", ADMIN))

    def test_citizens_are_held_to_their_own_rows(self):
        self.assertEqual(subscription_scope("alerts", CITIZEN), RowFilter("user_id", "eq", USER_ID))
        self.assertEqual(subscription_scope("profiles", CITIZEN), RowFilter("id", "eq", USER_ID))
        for table in ("responder_assignments", "responder_profiles"):
            with self.assertRaises(SubscriptionRefused):
                subscription_scope(table, CITIZEN)

    def test_unapproved_responders_are_refused(self):
        pending = {**RESPONDER, "account_status": "pending"}
        for table in ("alerts", "reports", "responder_assignments", "responder_profiles"):
            with self.assertRaises(SubscriptionRefused):
                subscription_scope(table, pending)

    def test_scoped_subscriber_misses_other_users_rows(self):
        manager = ConnectionManager()
        citizen = FakeSocket()

        async def scenario():
            scope = subscription_scope("alerts", CITIZEN)
            await manager.connect(citizen, Subscription("alerts", "*", parse_filter("status=eq.pending"), scope))
            await manager.broadcast("alerts", "INSERT", {"n": 1},
                                    new={"user_id": OTHER_USER_ID, "status": "pending", "victim_name": "Maria"})
            await manager.broadcast("alerts", "INSERT", {"n": 2}, new={"user_id": USER_ID, "status": "pending"})

        run(scenario())
        self.assertEqual(citizen.sent, [{"n": 2}])

    def test_private_columns_are_not_published(self):
        with patch.object(realtime_manager.manager, "broadcast", new_callable=AsyncMock) as mock_broadcast:
            mock_broadcast.return_value = 0
            run(realtime_manager.publish_change("profiles", "UPDATE",
                                                new={"id": USER_ID, "password_hash": "x", "fcm_token": "t"}))
        payload = mock_broadcast.call_args.args[2]
        self.assertEqual(payload["new"], {"id": USER_ID})


class ChangeFeedSocketTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        self.token = create_access_token({"sub": USER_ID, "role": "user"})

    @patch("agap.realtime.utils.load_user", new_callable=AsyncMock, return_value=CITIZEN)
    def test_citizen_cannot_follow_responder_accounts(self, mock_user):
        with self.client.websocket_connect("/api/realtime/ws?table=responder_profiles") as ws:
            ws.send_text(json.dumps({"token": self.token}))
            message = ws.receive()
        self.assertEqual(message["type"], "websocket.close")
        self.assertEqual(message["code"], 4003)

    @patch("agap.realtime.utils.load_user", new_callable=AsyncMock, return_value=CITIZEN)
    def test_citizen_alert_feed_is_scoped_to_own_rows(self, mock_user):
        with self.client.websocket_connect("/api/realtime/ws?table=alerts&event=INSERT") as ws:
            ws.send_text(json.dumps({"token": self.token}))
            self.assertEqual(ws.receive_json()["event"], "SUBSCRIBED")
            scopes = [s.scope for subs in realtime_utils.manager._subscriptions.values() for s in subs]
        self.assertIn(RowFilter("user_id", "eq", USER_ID), scopes)

    @patch("agap.realtime.utils.load_user", new_callable=AsyncMock, return_value=None)
    def test_unknown_profile_is_closed_as_unauthenticated(self, mock_user):
        with self.client.websocket_connect("/api/realtime/ws?table=alerts") as ws:
            ws.send_text(json.dumps({"token": self.token}))
            message = ws.receive()
        self.assertEqual(message["code"], 4001)

    def test_client_leaving_before_token_is_handled(self):
        before = realtime_utils.manager.subscriber_count()
        with self.client.websocket_connect("/api/realtime/ws?table=alerts"):
            pass
        self.assertEqual(realtime_utils.manager.subscriber_count(), before)


if __name__ == "__main__":
    unittest.main()
