import logging
from typing import Optional

from .utils import alert_to_incident, incident_to_history_item, newest_first, report_to_incident
from agap.reports.utils import with_signed_image
from agap.shared.db import execute_query
from agap.shared.response import error_response, success_response
from agap.shared.utils import serialize_row

logger = logging.getLogger(__name__)

HISTORY_STATUSES = ["accepted", "rejected"]


def index_assignments(assignments: list) -> dict:
    """alert_id / report_id -> assignment"""
    by_incident = {}
    for assignment in assignments:
        if assignment.get("alert_id"):
            by_incident[assignment["alert_id"]] = assignment
        if assignment.get("report_id"):
            by_incident[assignment["report_id"]] = assignment
    return by_incident


async def fetch_pending_incidents(current_user: dict):
    """Pending alerts and reports for the responder dashboard, newest first"""
    try:
        alerts = await execute_query("SELECT * FROM alerts WHERE status = 'pending' ORDER BY created_at DESC")
        reports = await execute_query("SELECT * FROM reports WHERE status = 'pending' ORDER BY created_at DESC")
        assignments = await execute_query(
            "SELECT * FROM responder_assignments WHERE responder_id = $1",
            (current_user["id"],)
        )
        by_incident = index_assignments([serialize_row(a) for a in assignments])

        incidents = [alert_to_incident(a, by_incident.get(a["id"])) for a in map(serialize_row, alerts)]
        incidents += [
            report_to_incident(with_signed_image(r), by_incident.get(r["id"]))
            for r in map(serialize_row, reports)
        ]
        incidents = newest_first(incidents)
        logger.info(f"Fetched {len(incidents)} pending incidents for responder {current_user['id']}")
        return success_response(incidents, "Pending incidents retrieved")
    except Exception as e:
        logger.error(f"Error fetching pending incidents: {e}", exc_info=True)
        return error_response(str(e), 500)


async def _names_by_user(user_ids: list) -> dict:
    if not user_ids:
        return {}
    rows = await execute_query(
        "SELECT id, full_name FROM profiles WHERE id = ANY($1::uuid[])",
        (user_ids,)
    )
    return {str(r["id"]): r["full_name"] for r in rows if r["full_name"]}


async def fetch_history(current_user: dict, incident_type: Optional[str] = None):
    """Alerts and reports this responder accepted or rejected, as history cards"""
    try:
        assignments = await execute_query(
            """
            SELECT * FROM responder_assignments
            WHERE responder_id = $1 AND response_status = ANY($2::text[])
            """,
            (current_user["id"], HISTORY_STATUSES)
        )
        assignments = [serialize_row(a) for a in assignments]
        if not assignments:
            return success_response([], "No history yet")

        by_incident = index_assignments(assignments)
        alert_ids = [a["alert_id"] for a in assignments if a.get("alert_id")]
        report_ids = [a["report_id"] for a in assignments if a.get("report_id")]

        alerts, reports = [], []
        if alert_ids and incident_type in (None, "alert"):
            rows = await execute_query(
                "SELECT * FROM alerts WHERE id = ANY($1::uuid[]) ORDER BY created_at DESC",
                (alert_ids,)
            )
            alerts = [serialize_row(r) for r in rows]
        if report_ids and incident_type in (None, "report"):
            rows = await execute_query(
                "SELECT * FROM reports WHERE id = ANY($1::uuid[]) ORDER BY created_at DESC",
                (report_ids,)
            )
            reports = [with_signed_image(serialize_row(r)) for r in rows]

        names = await _names_by_user(list({row["user_id"] for row in alerts + reports}))
        alert_creator_names = {a["id"]: names[a["user_id"]] for a in alerts if a["user_id"] in names}
        reporter_names = {r["id"]: names[r["user_id"]] for r in reports if r["user_id"] in names}

        incidents = [alert_to_incident(a, by_incident.get(a["id"])) for a in alerts]
        incidents += [report_to_incident(r, by_incident.get(r["id"])) for r in reports]
        items = [
            incident_to_history_item(i, reporter_names, alert_creator_names)
            for i in newest_first(incidents)
        ]
        logger.info(f"Fetched {len(items)} history items for responder {current_user['id']}")
        return success_response(items, "History retrieved")
    except Exception as e:
        logger.error(f"Error fetching history for {current_user['id']}: {e}", exc_info=True)
        return error_response(str(e), 500)
