import unittest
from datetime import datetime, timezone
from io import BytesIO
from unittest.mock import AsyncMock, patch

from fastapi.testclient import TestClient

from agap.auth.manager import get_current_user
from agap.reports.manager import create_report, get_report
from agap.reports.models import ReportCreate
from helpers import CITIZEN, OTHER_USER_ID, REPORT_ID, RESPONDER, USER_ID, body, run
from main import app


def report_row(status="pending", user_id=USER_ID, image_url=None, description="Flooded road"):
    return {
        "id": REPORT_ID,
        "user_id": user_id,
        "status": status,
        "latitude": 10.7,
        "longitude": 122.56,
        "location_name": "Diversion Road",
        "image_url": image_url,
        "description": description,
        "created_at": datetime(2025, 1, 5, 7, 0, tzinfo=timezone.utc),
        "updated_at": datetime(2025, 1, 5, 7, 0, tzinfo=timezone.utc),
        "canceled_at": None,
    }


@patch("agap.reports.manager.notify_responders", new_callable=AsyncMock)
@patch("agap.reports.manager.publish_change", new_callable=AsyncMock)
@patch("agap.reports.manager.execute_query", new_callable=AsyncMock)
class CreateReportTests(unittest.TestCase):
    def test_report_starts_pending(self, mock_query, mock_publish, mock_notify):
        mock_query.return_value = report_row()
        response = run(create_report(ReportCreate(latitude=10.7, longitude=122.56, description="  Flooded road "),
                                     CITIZEN))
        self.assertEqual(response.status_code, 200)
        self.assertIn("'pending'", mock_query.call_args.args[0])
        self.assertEqual(mock_query.call_args.args[1][-1], "Flooded road")
        self.assertEqual(mock_publish.call_args.args[:2], ("reports", "INSERT"))
        self.assertEqual(mock_notify.call_args.args[0], "reports")

    def test_blank_description_stored_as_null(self, mock_query, mock_publish, mock_notify):
        mock_query.return_value = report_row(description=None)
        run(create_report(ReportCreate(latitude=10.7, longitude=122.56, description="   "), CITIZEN))
        self.assertIsNone(mock_query.call_args.args[1][-1])

    def test_client_supplied_image_path_is_refused(self, mock_query, mock_publish, mock_notify):
        path = f"{OTHER_USER_ID}/{REPORT_ID}/1700000000000.jpg"
        response = run(create_report(ReportCreate(latitude=10.7, longitude=122.56, image_url=path), CITIZEN))
        self.assertEqual(response.status_code, 400)
        mock_query.assert_not_awaited()


class GetReportTests(unittest.TestCase):
    @patch("agap.shared.storage.get_signed_url")
    @patch("agap.reports.manager.execute_query", new_callable=AsyncMock)
    def test_image_path_of_another_report_is_not_signed(self, mock_query, mock_sign):
        mock_query.return_value = report_row(image_url=f"{OTHER_USER_ID}/{REPORT_ID}/1700000000000.jpg")
        data = body(run(get_report(REPORT_ID, CITIZEN)))["data"]
        self.assertIsNone(data["image_url"])
        mock_sign.assert_not_called()

    @patch("agap.shared.storage.get_signed_url", return_value="https://signed.example/img.jpg")
    @patch("agap.reports.manager.execute_query", new_callable=AsyncMock)
    def test_image_path_is_signed_for_responders(self, mock_query, mock_sign):
        mock_query.return_value = report_row(image_url=f"{USER_ID}/{REPORT_ID}/1700000000000.jpg")
        data = body(run(get_report(REPORT_ID, RESPONDER)))["data"]
        self.assertEqual(data["image_url"], "https://signed.example/img.jpg")
        mock_sign.assert_called_once_with("report-images", f"{USER_ID}/{REPORT_ID}/1700000000000.jpg")


class UploadReportImageApiTests(unittest.TestCase):
    def setUp(self):
        self.client = TestClient(app)
        app.dependency_overrides[get_current_user] = lambda: CITIZEN

    def tearDown(self):
        app.dependency_overrides.clear()

    @patch("agap.reports.manager.publish_change", new_callable=AsyncMock)
    @patch("agap.reports.manager.upload_to_bucket", new_callable=AsyncMock)
    @patch("agap.reports.manager.execute_query", new_callable=AsyncMock)
    def test_upload_stores_path_not_url(self, mock_query, mock_upload, mock_publish):
        stored = {}

        async def query(sql, params=None, fetch_one=False, commit=False):
            if sql.startswith("SELECT"):
                return report_row()
            stored["path"] = params[0]
            return report_row(image_url=params[0])

        mock_query.side_effect = query
        response = self.client.post(
            f"/api/reports/{REPORT_ID}/image",
            files={"image": ("photo.JPG", BytesIO(b"\xff\xd8\xff"), "image/jpeg")},
        )
        self.assertEqual(response.status_code, 200)
        bucket, path, contents, content_type = mock_upload.call_args.args
        self.assertEqual(bucket, "report-images")
        self.assertRegex(path, rf"^{USER_ID}/{REPORT_ID}/\d{{13}}\.jpg$")
        self.assertEqual(content_type, "image/jpeg")
        self.assertEqual(stored["path"], path)

    @patch("agap.reports.manager.upload_to_bucket", new_callable=AsyncMock)
    @patch("agap.reports.manager.execute_query", new_callable=AsyncMock)
    def test_failed_upload_leaves_report_untouched(self, mock_query, mock_upload):
        mock_query.return_value = report_row()
        mock_upload.side_effect = RuntimeError("storage unavailable")
        response = self.client.post(
            f"/api/reports/{REPORT_ID}/image",
            files={"image": ("photo.png", BytesIO(b"png"), "image/png")},
        )
        self.assertEqual(response.status_code, 500)
        self.assertEqual(mock_query.await_count, 1)

    @patch("agap.reports.manager.execute_query", new_callable=AsyncMock)
    def test_only_owner_may_attach_image(self, mock_query):
        mock_query.return_value = report_row(user_id=OTHER_USER_ID)
        response = self.client.post(
            f"/api/reports/{REPORT_ID}/image",
            files={"image": ("photo.png", BytesIO(b"png"), "image/png")},
        )
        self.assertEqual(response.status_code, 403)


if __name__ == "__main__":
    unittest.main()
