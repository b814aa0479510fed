import unittest
from datetime import datetime
from unittest.mock import AsyncMock, patch

from agap.incidents.manager import fetch_history, fetch_pending_incidents
from agap.incidents.utils import (
    alert_to_incident, format_timestamp, incident_to_history_item, report_to_incident,
)
from helpers import ALERT_ID, OTHER_USER_ID, REPORT_ID, RESPONDER, RESPONDER_ID, USER_ID, body, run

ALERT = {
    "id": ALERT_ID, "user_id": USER_ID, "status": "accepted", "latitude": 10.72, "longitude": 122.56,
    "location_name": None, "victim_name": None, "victim_age": 34, "victim_blood_type": "O+",
    "victim_sex": "Male", "created_at": "2025-01-05T15:07:00+00:00",
    "updated_at": "2025-01-05T15:07:00+00:00", "canceled_at": None,
}
REPORT = {
    "id": REPORT_ID, "user_id": OTHER_USER_ID, "status": "rejected", "latitude": 10.70, "longitude": 122.55,
    "location_name": "Molo Church", "image_url": None, "description": "Fallen tree",
    "created_at": "2025-01-06T09:30:00+00:00", "updated_at": "2025-01-06T09:30:00+00:00", "canceled_at": None,
}


class IncidentShapeTests(unittest.TestCase):
    def test_alert_to_incident(self):
        assignment = {"id": "a1", "response_status": "accepted"}
        incident = alert_to_incident(ALERT, assignment)
        self.assertEqual(incident["type"], "alert")
        self.assertEqual(incident["timestamp"], ALERT["created_at"])
        self.assertTrue(incident["is_assigned"])
        self.assertEqual(incident["assignment_status"], "accepted")
        self.assertNotIn("image_url", incident)

    def test_report_without_assignment(self):
        incident = report_to_incident(REPORT)
        self.assertEqual(incident["type"], "report")
        self.assertFalse(incident["is_assigned"])
        self.assertIsNone(incident["assignment"])
        self.assertEqual(incident["description"], "Fallen tree")

    def test_format_timestamp(self):
        self.assertEqual(format_timestamp("2025-01-05T15:07:00+00:00"), "Jan 5, 2025, 03:07 PM")
        self.assertEqual(format_timestamp(datetime(2024, 12, 25, 9, 5)), "Dec 25, 2024, 09:05 AM")
        self.assertEqual(format_timestamp("yesterday"), "yesterday")

    def test_alert_history_item_name_fallbacks(self):
        incident = alert_to_incident(ALERT, {"response_status": "accepted"})
        item = incident_to_history_item(incident, alert_creator_names={ALERT_ID: "Juan Dela Cruz"})
        self.assertEqual(item["name"], "Juan Dela Cruz")
        self.assertEqual(item["location"], "Unknown location")
        self.assertEqual(item["type"], "Emergency Alert")
        self.assertEqual(item["status"], "accepted")
        self.assertEqual(item["time"], "Jan 5, 2025, 03:07 PM")

        self.assertEqual(incident_to_history_item(incident)["name"], "Unknown")
        named = alert_to_incident(dict(ALERT, victim_name="Maria"), None)
        self.assertEqual(incident_to_history_item(named)["name"], "Maria")

    def test_report_history_item(self):
        incident = report_to_incident(REPORT, {"response_status": "rejected"})
        item = incident_to_history_item(incident)
        self.assertEqual(item["name"], "Unknown Reporter")
        self.assertEqual(item["status"], "dismissed")
        self.assertEqual(item["type"], "Emergency Report")
        self.assertEqual(item["location"], "Molo Church")


@patch("agap.incidents.manager.execute_query", new_callable=AsyncMock)
class IncidentFeedTests(unittest.TestCase):
    def test_pending_feed_is_merged_newest_first(self, mock_query):
        pending_alert = dict(ALERT, status="pending")
        pending_report = dict(REPORT, status="pending")
        mock_query.side_effect = [
            [pending_alert],
            [pending_report],
            [{"id": "a1", "alert_id": ALERT_ID, "report_id": None, "responder_id": RESPONDER_ID,
              "response_status": "pending"}],
        ]
        data = body(run(fetch_pending_incidents(RESPONDER)))["data"]
        self.assertEqual([i["type"] for i in data], ["report", "alert"])
        self.assertTrue(data[1]["is_assigned"])
        self.assertFalse(data[0]["is_assigned"])

    def test_history_uses_profile_names(self, mock_query):
        mock_query.side_effect = [
            [
                {"id": "a1", "alert_id": ALERT_ID, "report_id": None, "responder_id": RESPONDER_ID,
                 "response_status": "accepted"},
                {"id": "a2", "alert_id": None, "report_id": REPORT_ID, "responder_id": RESPONDER_ID,
                 "response_status": "rejected"},
            ],
            [ALERT],
            [REPORT],
            [{"id": USER_ID, "full_name": "Juan Dela Cruz"}, {"id": OTHER_USER_ID, "full_name": "Ana Reyes"}],
        ]
        items = body(run(fetch_history(RESPONDER)))["data"]
        self.assertEqual([i["name"] for i in items], ["Ana Reyes", "Juan Dela Cruz"])
        self.assertEqual([i["status"] for i in items], ["dismissed", "accepted"])

    def test_empty_history(self, mock_query):
        mock_query.side_effect = [[]]
        self.assertEqual(body(run(fetch_history(RESPONDER)))["data"], [])


if __name__ == "__main__":
    unittest.main()
