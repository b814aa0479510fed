import logging
from typing import Optional
from uuid import uuid4

from .models import AlertCreate
from agap.realtime.manager import notify_responders, publish_change
from agap.shared.db import execute_query
from agap.shared.response import error_response, success_response
from agap.shared.utils import is_valid_uuid, serialize_row

logger = logging.getLogger(__name__)

CANCELABLE_STATUSES = ("pending", "accepted")
STAFF_ROLES = ("responder", "admin")


def can_view(alert, current_user: dict) -> bool:
    return str(alert["user_id"]) == current_user["id"] or current_user["role"] in STAFF_ROLES


async def get_victim_defaults(user_id: str) -> dict:
    """Victim details prefilled from the citizen's own profile"""
    row = await execute_query(
        "SELECT first_name, last_name, age, blood_type, gender FROM user_profiles WHERE id = $1",
        (user_id,),
        fetch_one=True
    )
    if not row:
        return {}
    name = " ".join(part.strip() for part in (row["first_name"], row["last_name"]) if part and part.strip())
    return {
        "victim_name": name or None,
        "victim_age": row["age"],
        "victim_blood_type": row["blood_type"],
        "victim_sex": row["gender"],
    }


async def create_alert(alert: AlertCreate, current_user: dict):
    """Raise a new emergency alert at the citizen's position"""
    logger.debug(f"create_alert called by user: {current_user['id']}")
    if current_user["role"] != "user":
        logger.warning(f"Permission denied for user: {current_user['id']} ({current_user['role']})")
        return error_response("Permission denied", 403)

    try:
        victim = {
            "victim_name": alert.victim_name,
            "victim_age": alert.victim_age,
            "victim_blood_type": alert.victim_blood_type,
            "victim_sex": alert.victim_sex,
        }
        if any(value is None for value in victim.values()):
            defaults = await get_victim_defaults(current_user["id"])
            victim = {k: v if v is not None else defaults.get(k) for k, v in victim.items()}

        alert_id = str(uuid4())
        logger.info(f"Creating alert {alert_id} at ({alert.latitude}, {alert.longitude})")
        row = await execute_query(
            """
            INSERT INTO alerts
            (id, user_id, status, latitude, longitude, location_name,
             victim_name, victim_age, victim_blood_type, victim_sex, created_at, updated_at)
            VALUES ($1, $2, 'pending', $3, $4, $5, $6, $7, $8, $9, NOW(), NOW())
            RETURNING *
            """,
            (alert_id, current_user["id"], alert.latitude, alert.longitude, alert.location_name,
             victim["victim_name"], victim["victim_age"], victim["victim_blood_type"], victim["victim_sex"]),
            commit=True,
            fetch_one=True
        )
        data = serialize_row(row)
        await publish_change("alerts", "INSERT", new=data)
        await notify_responders("alerts", data)
        logger.info(f"Alert {alert_id} created")
        return success_response(data, "Alert sent")
    except Exception as e:
        logger.error(f"Error creating alert: {e}", exc_info=True)
        return error_response(str(e), 500)


async def cancel_alert(alert_id: str, current_user: dict):
    """Cancel the caller's own alert while it is pending or accepted"""
    logger.info(f"User {current_user['id']} canceling alert {alert_id}")
    if not is_valid_uuid(alert_id):
        return error_response("Alert not found", 404)
    try:
        existing = await execute_query("SELECT * FROM alerts WHERE id = $1", (alert_id,), fetch_one=True)
        if not existing:
            return error_response("Alert not found", 404)
        if str(existing["user_id"]) != current_user["id"]:
            return error_response("Permission denied", 403)
        if existing["status"] not in CANCELABLE_STATUSES:
            return error_response(f"Alert is already {existing['status']} and cannot be canceled", 409)

        row = await execute_query(
            """
            UPDATE alerts
            SET status = 'canceled', canceled_at = NOW(), updated_at = NOW()
            WHERE id = $1 AND user_id = $2 AND status = ANY($3::text[])
            RETURNING *
            """,
            (alert_id, current_user["id"], list(CANCELABLE_STATUSES)),
            commit=True,
            fetch_one=True
        )
        if not row:
            return error_response("Alert status changed; it can no longer be canceled", 409)
        data = serialize_row(row)
        await publish_change("alerts", "UPDATE", new=data, old=existing)
        return success_response(data, "Alert canceled")
    except Exception as e:
        logger.error(f"Error canceling alert {alert_id}: {e}", exc_info=True)
        return error_response(str(e), 500)


async def fetch_alert_status(alert_id: str) -> Optional[dict]:
    """Alert status plus the state of its most recent assignment"""
    row = await execute_query(
        """
        SELECT a.status, a.user_id, ra.response_status
        FROM alerts a
        LEFT JOIN LATERAL (
            SELECT response_status FROM responder_assignments
            WHERE alert_id = a.id
            ORDER BY assigned_at DESC
            LIMIT 1
        ) ra ON TRUE
        WHERE a.id = $1
        """,
        (alert_id,),
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


async def get_alert_status(alert_id: str, current_user: dict):
    if not is_valid_uuid(alert_id):
        return error_response("Alert not found", 404)
    try:
        status = await fetch_alert_status(alert_id)
        if not status:
            return error_response("Alert not found", 404)
        if not can_view(status, current_user):
            return error_response("Permission denied", 403)
        return success_response(public_status(status), "Alert status retrieved")
    except Exception as e:
        logger.error(f"Error checking status of alert {alert_id}: {e}")
        return error_response("Failed to check status", 500)


async def get_alert(alert_id: str, current_user: dict):
    if not is_valid_uuid(alert_id):
        return error_response("Alert not found", 404)
    try:
        row = await execute_query("SELECT * FROM alerts WHERE id = $1", (alert_id,), fetch_one=True)
        if not row:
            return error_response("Alert not found", 404)
        if not can_view(row, current_user):
            return error_response("Permission denied", 403)
        return success_response(serialize_row(row), "Alert retrieved")
    except Exception as e:
        logger.error(f"Error fetching alert {alert_id}: {e}")
        return error_response(str(e), 500)


async def list_my_alerts(current_user: dict, status: Optional[str] = None):
    try:
        query = "SELECT * FROM alerts WHERE user_id = $1"
        params = [current_user["id"]]
        if status:
            query += " AND status = $2"
            params.append(status)
        query += " ORDER BY created_at DESC"
        results = await execute_query(query, tuple(params))
        alerts = [serialize_row(r) for r in results]
        logger.info(f"Fetched {len(alerts)} alerts for user {current_user['id']}")
        return success_response(alerts, "Alerts retrieved")
    except Exception as e:
        logger.error(f"Error listing alerts for {current_user['id']}: {e}")
        return error_response(str(e), 500)
