import logging
from typing import Optional, Tuple
from uuid import uuid4

import asyncpg

from .models import AssignmentCreate, AssignmentUpdate
from agap.realtime.manager import publish_change
from agap.shared.db import execute_query, transaction
from agap.shared.response import error_response, success_response
from agap.shared.utils import is_valid_uuid, serialize_row

logger = logging.getLogger(__name__)

INCIDENT_TABLES = {"alert": "alerts", "report": "reports"}

# response_status -> (incident status, incident statuses it may move from)
INCIDENT_TRANSITIONS = {
    "accepted": ("accepted", ("pending",)),
    "rejected": ("rejected", ("pending",)),
    "completed": ("completed", ("pending", "accepted")),
}


def incident_ref(assignment) -> Tuple[str, str]:
    """(incident type, incident id) of an assignment row"""
    if assignment["alert_id"] is not None:
        return "alert", str(assignment["alert_id"])
    return "report", str(assignment["report_id"])


def incident_transition(response_status: str) -> Optional[Tuple[str, Tuple[str, ...]]]:
    return INCIDENT_TRANSITIONS.get(response_status)


async def propagate_to_incident(conn, incident_type: str, incident_id: str, response_status: str):
    """Move the alert/report along with the assignment; returns the updated row or None"""
    transition = incident_transition(response_status)
    if not transition:
        return None
    new_status, from_statuses = transition
    table = INCIDENT_TABLES[incident_type]
    return await conn.fetchrow(
        f"""
        UPDATE {table}
        SET status = $1, updated_at = NOW()
        WHERE id = $2 AND status = ANY($3::text[])
        RETURNING *
        """,
        new_status, incident_id, list(from_statuses),
    )


async def _publish(assignment, event: str, old_assignment=None, incident_type=None, incident=None, old_incident=None):
    await publish_change("responder_assignments", event, new=assignment, old=old_assignment)
    if incident is not None:
        await publish_change(INCIDENT_TABLES[incident_type], "UPDATE", new=incident, old=old_incident)


async def create_assignment(request: AssignmentCreate, current_user: dict):
    """Record a responder's answer to a pending alert or report"""
    logger.info(f"Responder {current_user['id']} responding '{request.response_status}' "
                f"to {request.incident_type} {request.incident_id}")
    if current_user["role"] != "responder":
        return error_response("Only responders can respond to incidents", 403)
    if not is_valid_uuid(request.incident_id):
        return error_response(f"{request.incident_type.capitalize()} not found", 404)

    table = INCIDENT_TABLES[request.incident_type]
    column = f"{request.incident_type}_id"
    try:
        async with transaction() as conn:
            # Row lock: concurrent answers to one incident are serialized here
            incident = await conn.fetchrow(f"SELECT * FROM {table} WHERE id = $1 FOR UPDATE", request.incident_id)
            if not incident:
                return error_response(f"{request.incident_type.capitalize()} not found", 404)
            if incident["status"] != "pending":
                logger.warning(f"{request.incident_type} {request.incident_id} is already {incident['status']}")
                return error_response(f"This {request.incident_type} is already {incident['status']}", 409)

            assignment = await conn.fetchrow(
                f"""
                INSERT INTO responder_assignments
                (id, {column}, responder_id, response_status, assigned_at, responded_at)
                VALUES ($1, $2, $3, $4, NOW(), CASE WHEN $5 THEN NOW() ELSE NULL END)
                RETURNING *
                """,
                str(uuid4()), request.incident_id, current_user["id"], request.response_status,
                request.response_status == "accepted",
            )
            updated = await propagate_to_incident(
                conn, request.incident_type, request.incident_id, request.response_status
            )
    except asyncpg.UniqueViolationError:
        logger.warning(f"Duplicate assignment by {current_user['id']} on {request.incident_type} {request.incident_id}")
        return error_response(f"You have already responded to this {request.incident_type}", 409)
    except Exception as e:
        logger.error(f"Error creating assignment: {e}", exc_info=True)
        return error_response(str(e), 500)

    await _publish(assignment, "INSERT", incident_type=request.incident_type, incident=updated, old_incident=incident)
    logger.info(f"Assignment {assignment['id']} created ({request.response_status})")
    return success_response(serialize_row(assignment), "Response recorded")


async def update_assignment(assignment_id: str, request: AssignmentUpdate, current_user: dict):
    """Change the state of one of the caller's own assignments"""
    logger.info(f"Responder {current_user['id']} updating assignment {assignment_id} to '{request.response_status}'")
    if not is_valid_uuid(assignment_id):
        return error_response("Assignment not found", 404)
    try:
        existing = await execute_query(
            "SELECT * FROM responder_assignments WHERE id = $1",
            (assignment_id,),
            fetch_one=True
        )
        if not existing:
            return error_response("Assignment not found", 404)
        if str(existing["responder_id"]) != current_user["id"]:
            return error_response("Permission denied", 403)

        incident_type, incident_id = incident_ref(existing)
        old_incident = await execute_query(
            f"SELECT * FROM {INCIDENT_TABLES[incident_type]} WHERE id = $1",
            (incident_id,),
            fetch_one=True
        )
        async with transaction() as conn:
            assignment = await conn.fetchrow(
                """
                UPDATE responder_assignments
                SET response_status = $1,
                    responded_at = CASE WHEN $4 THEN NOW() ELSE responded_at END
                WHERE id = $2 AND responder_id = $3
                RETURNING *
                """,
                request.response_status, assignment_id, current_user["id"], request.response_status == "accepted",
            )
            updated = await propagate_to_incident(conn, incident_type, incident_id, request.response_status)
    except Exception as e:
        logger.error(f"Error updating assignment {assignment_id}: {e}", exc_info=True)
        return error_response(str(e), 500)

    await _publish(assignment, "UPDATE", old_assignment=existing, incident_type=incident_type,
                   incident=updated, old_incident=old_incident)
    return success_response(serialize_row(assignment), "Assignment updated")


async def list_my_assignments(current_user: dict, response_status: Optional[str] = None):
    try:
        query = "SELECT * FROM responder_assignments WHERE responder_id = $1"
        params = [current_user["id"]]
        if response_status:
            query += " AND response_status = $2"
            params.append(response_status)
        query += " ORDER BY assigned_at DESC"
        results = await execute_query(query, tuple(params))
        return success_response([serialize_row(r) for r in results], "Assignments retrieved")
    except Exception as e:
        logger.error(f"Error listing assignments for {current_user['id']}: {e}")
        return error_response(str(e), 500)
