import logging
from typing import Optional
from uuid import uuid4

from fastapi import UploadFile

from .models import ReportCreate
from .utils import is_report_image_path, report_image_content_type, report_image_path, with_signed_image
from agap.realtime.manager import notify_responders, publish_change
from agap.shared import config
from agap.shared.db import execute_query
from agap.shared.response import error_response, success_response
from agap.shared.storage import upload_to_bucket
from agap.shared.utils import is_valid_uuid, serialize_row

logger = logging.getLogger(__name__)

CANCELABLE_STATUSES = ("pending", "accepted")
STAFF_ROLES = ("responder", "admin")


def can_view(report, current_user: dict) -> bool:
    return str(report["user_id"]) == current_user["id"] or current_user["role"] in STAFF_ROLES


async def create_report(report: ReportCreate, current_user: dict):
    """File a new incident report; the photo is attached afterwards"""
    logger.debug(f"create_report called by user: {current_user['id']}")
    if current_user["role"] != "user":
        logger.warning(f"Permission denied for user: {current_user['id']} ({current_user['role']})")
        return error_response("Permission denied", 403)

    if is_report_image_path(report.image_url):
        logger.warning(f"Rejected client supplied image path from {current_user['id']}")
        return error_response("Attach the photo with the image upload endpoint", 400)

    try:
        report_id = str(uuid4())
        description = report.description.strip() if report.description and report.description.strip() else None
        logger.info(f"Creating report {report_id} at ({report.latitude}, {report.longitude})")
        row = await execute_query(
            """
            INSERT INTO reports
            (id, user_id, status, latitude, longitude, location_name, image_url, description, created_at, updated_at)
            VALUES ($1, $2, 'pending', $3, $4, $5, $6, $7, NOW(), NOW())
            RETURNING *
            """,
            (report_id, current_user["id"], report.latitude, report.longitude,
             report.location_name, report.image_url, description),
            commit=True,
            fetch_one=True
        )
        data = serialize_row(row)
        await publish_change("reports", "INSERT", new=data)
        await notify_responders("reports", data)
        logger.info(f"Report {report_id} created")
        return success_response(data, "Report submitted")
    except Exception as e:
        logger.error(f"Error creating report: {e}", exc_info=True)
        return error_response(str(e), 500)


async def upload_report_image(report_id: str, image: UploadFile, current_user: dict):
    """Store the report photo privately and record its path on the report"""
    if not is_valid_uuid(report_id):
        return error_response("Report not found", 404)
    try:
        existing = await execute_query("SELECT * FROM reports WHERE id = $1", (report_id,), fetch_one=True)
        if not existing:
            return error_response("Report not found", 404)
        if str(existing["user_id"]) != current_user["id"]:
            return error_response("Permission denied", 403)

        file_path = report_image_path(current_user["id"], report_id, image.filename)
        content_type = report_image_content_type(image.filename)
        contents = await image.read()
        if not contents:
            return error_response("Image file is empty", 400)

        try:
            await upload_to_bucket(config.REPORT_IMAGES_BUCKET, file_path, contents, content_type)
        except Exception as e:
            logger.error(f"Upload of report image {file_path} failed: {e}")
            return error_response("Failed to upload image", 500)

        row = await execute_query(
            "UPDATE reports SET image_url = $1, updated_at = NOW() WHERE id = $2 RETURNING *",
            (file_path, report_id),
            commit=True,
            fetch_one=True
        )
        data = serialize_row(row)
        await publish_change("reports", "UPDATE", new=data, old=existing)
        logger.info(f"Image stored for report {report_id} at {file_path}")
        return success_response(with_signed_image(data), "Image uploaded")
    except Exception as e:
        logger.error(f"Error uploading image for report {report_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


async def cancel_report(report_id: str, current_user: dict):
    """Cancel the caller's own report while it is pending or accepted"""
    logger.info(f"User {current_user['id']} canceling report {report_id}")
    if not is_valid_uuid(report_id):
        return error_response("Report not found", 404)
    try:
        existing = await execute_query("SELECT * FROM reports WHERE id = $1", (report_id,), fetch_one=True)
        if not existing:
            return error_response("Report not found", 404)
        if str(existing["user_id"]) != current_user["id"]:
            return error_response("Permission denied", 403)
        if existing["status"] not in CANCELABLE_STATUSES:
            return error_response(f"Report is already {existing['status']} and cannot be canceled", 409)

        row = await execute_query(
            """
            UPDATE reports
            SET status = 'canceled', canceled_at = NOW(), updated_at = NOW()
            WHERE id = $1 AND user_id = $2 AND status = ANY($3::text[])
            RETURNING *
            """,
            (report_id, current_user["id"], list(CANCELABLE_STATUSES)),
            commit=True,
            fetch_one=True
        )
        if not row:
            return error_response("Report status changed; it can no longer be canceled", 409)
        data = serialize_row(row)
        await publish_change("reports", "UPDATE", new=data, old=existing)
        return success_response(data, "Report canceled")
    except Exception as e:
        logger.error(f"Error canceling report {report_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


async def fetch_report_status(report_id: str) -> Optional[dict]:
    row = await execute_query(
        """
        SELECT r.status, r.user_id, ra.response_status
        FROM reports r
        LEFT JOIN LATERAL (
            SELECT response_status FROM responder_assignments
            WHERE report_id = r.id
            ORDER BY assigned_at DESC
            LIMIT 1
        ) ra ON TRUE
        WHERE r.id = $1
        """,
        (report_id,),
        fetch_one=True
    )
    if not row:
        return None
    return {
        "status": row["status"],
        "has_responder": row["response_status"] is not None,
        "response_status": row["response_status"],
        "user_id": str(row["user_id"]),
    }


def public_status(status: dict) -> dict:
    return {k: v for k, v in status.items() if k != "user_id"}


async def get_report_status(report_id: str, current_user: dict):
    if not is_valid_uuid(report_id):
        return error_response("Report not found", 404)
    try:
        status = await fetch_report_status(report_id)
        if not status:
            return error_response("Report not found", 404)
        if not can_view(status, current_user):
            return error_response("Permission denied", 403)
        return success_response(public_status(status), "Report status retrieved")
    except Exception as e:
        logger.error(f"Error checking status of report {report_id}: {e}")
        return error_response("Failed to check status", 500)


async def get_report(report_id: str, current_user: dict):
    if not is_valid_uuid(report_id):
        return error_response("Report not found", 404)
    try:
        row = await execute_query("SELECT * FROM reports WHERE id = $1", (report_id,), fetch_one=True)
        if not row:
            return error_response("Report not found", 404)
        if not can_view(row, current_user):
            return error_response("Permission denied", 403)
        return success_response(with_signed_image(serialize_row(row)), "Report retrieved")
    except Exception as e:
        logger.error(f"Error fetching report {report_id}: {e}")
        return error_response(str(e), 500)


async def list_my_reports(current_user: dict, status: Optional[str] = None):
    try:
        query = "SELECT * FROM reports WHERE user_id = $1"
        params = [current_user["id"]]
        if status:
            query += " AND status = $2"
            params.append(status)
        query += " ORDER BY created_at DESC"
        results = await execute_query(query, tuple(params))
        reports = [with_signed_image(serialize_row(r)) for r in results]
        return success_response(reports, "Reports retrieved")
    except Exception as e:
        logger.error(f"Error listing reports for {current_user['id']}: {e}")
        return error_response(str(e), 500)
