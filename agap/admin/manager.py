import logging

from agap.realtime.manager import publish_change
from agap.shared.db import execute_query
from agap.shared.email_service import send_account_status_email
from agap.shared.response import error_response, success_response
from agap.shared.utils import is_valid_uuid, serialize_row

logger = logging.getLogger(__name__)

ACCOUNT_FILTERS = ("all", "pending", "approved", "rejected")


def count_by_status(accounts: list) -> dict:
    counts = {"all": len(accounts), "pending": 0, "approved": 0, "rejected": 0}
    for account in accounts:
        counts[account["account_status"]] = counts.get(account["account_status"], 0) + 1
    return counts


async def list_responder_accounts(status_filter: str = "pending"):
    """Responder accounts for the admin review screen; counts always cover every account"""
    if status_filter not in ACCOUNT_FILTERS:
        return error_response(f"Invalid filter. Use one of: {', '.join(ACCOUNT_FILTERS)}", 400)
    try:
        rows = await execute_query(
            """
            SELECT p.id, p.email, p.full_name, p.role, p.created_at,
                   r.municipality, r.province, r.office_address, r.contact_number,
                   COALESCE(r.account_status, 'pending') AS account_status
            FROM profiles p
            LEFT JOIN responder_profiles r ON r.id = p.id
            WHERE p.role = 'responder'
            ORDER BY p.created_at DESC
            """
        )
        accounts = [serialize_row(r) for r in rows]
        shown = accounts if status_filter == "all" else [a for a in accounts if a["account_status"] == status_filter]
        logger.info(f"Listing {len(shown)} of {len(accounts)} responder accounts (filter={status_filter})")
        return success_response({
            "accounts": shown,
            "counts": count_by_status(accounts),
            "filter": status_filter,
        }, "Responder accounts retrieved")
    except Exception as e:
        logger.error(f"Error fetching responder accounts: {e}")
        return error_response(f"Failed to fetch accounts: {e}", 500)


async def set_account_status(responder_id: str, account_status: str, admin: dict):
    logger.info(f"Admin {admin['id']} setting responder {responder_id} to {account_status}")
    if not is_valid_uuid(responder_id):
        return error_response("Responder account not found", 404)
    try:
        old = await execute_query(
            """
            SELECT r.*, p.email, p.full_name
            FROM responder_profiles r
            JOIN profiles p ON p.id = r.id
            WHERE r.id = $1
            """,
            (responder_id,),
            fetch_one=True
        )
        if not old:
            return error_response("Responder account not found", 404)
        row = await execute_query(
            """
            UPDATE responder_profiles
            SET account_status = $1, updated_at = NOW()
            WHERE id = $2
            RETURNING *
            """,
            (account_status, responder_id),
            commit=True,
            fetch_one=True
        )
    except Exception as e:
        logger.error(f"Error updating account {responder_id}: {e}")
        return error_response(f"Failed to update account: {e}", 500)

    old = dict(old)
    contact = {"email": old.pop("email"), "name": old.pop("full_name") or "Responder"}
    await publish_change("responder_profiles", "UPDATE", new=row, old=old)
    if old.get("account_status") != account_status:
        await send_account_status_email(contact["email"], contact["name"], account_status)
    return success_response(serialize_row(row), f"Account {account_status}")


async def approve_responder(responder_id: str, admin: dict):
    return await set_account_status(responder_id, "approved", admin)


async def reject_responder(responder_id: str, admin: dict):
    return await set_account_status(responder_id, "rejected", admin)
