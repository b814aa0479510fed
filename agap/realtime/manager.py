import json
import logging
from datetime import datetime, timezone
from typing import Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, messaging
from fastapi.concurrency import run_in_threadpool

from agap.shared import config
from agap.shared.db import execute_query
from agap.shared.response import error_response, success_response
from agap.shared.utils import serialize_row
from .utils import manager

logger = logging.getLogger(__name__)

PUSH_TITLES = {
    "alerts": "Emergency Alert - AGAP",
    "reports": "Emergency Report - AGAP",
}
PUSH_BODIES = {
    "alerts": "New emergency alert at {location}",
    "reports": "New emergency report at {location}",
}


def firebase_ready() -> bool:
    """Initialize the Firebase app once; False when no credentials are configured."""
    if firebase_admin._apps:
        return True
    if not config.FIREBASE_CREDENTIALS:
        logger.warning("FIREBASE_CREDENTIALS not set. Push notifications are disabled.")
        return False
    try:
        cred = credentials.Certificate(json.loads(config.FIREBASE_CREDENTIALS))
        firebase_admin.initialize_app(cred)
        logger.info("Firebase app initialized.")
        return True
    except (ValueError, OSError) as e:
        logger.error(f"Could not initialize Firebase: {e}")
        return False


# Never leave the server, whatever the subscription
PRIVATE_COLUMNS = ("password_hash", "fcm_token")


def _public_columns(row: Optional[Dict]) -> Optional[Dict]:
    if not row:
        return row
    return {k: v for k, v in row.items() if k not in PRIVATE_COLUMNS}


async def publish_change(table: str, event: str, new: Optional[Dict] = None, old: Optional[Dict] = None) -> int:
    """Deliver a row change to every matching realtime subscriber."""
    new = _public_columns(serialize_row(new))
    old = _public_columns(serialize_row(old))
    payload = {
        "schema": "public",
        "table": table,
        "event": event,
        "new": new or {},
        "old": old or {},
        "commit_timestamp": datetime.now(timezone.utc).isoformat(),
    }
    delivered = await manager.broadcast(table, event, payload, new=new, old=old)
    logger.debug(f"Published {event} on {table} to {delivered} subscriber(s)")
    return delivered


async def get_responder_fcm_tokens() -> List[str]:
    results = await execute_query(
        """
        SELECT p.fcm_token
        FROM profiles p
        JOIN responder_profiles r ON r.id = p.id
        WHERE p.role = 'responder' AND r.account_status = 'approved' AND p.fcm_token IS NOT NULL
        """
    )
    tokens = [row["fcm_token"] for row in results if row["fcm_token"]]
    logger.debug(f"Fetched {len(tokens)} responder FCM tokens")
    return tokens


def build_push_message(table: str, record: Dict, tokens: List[str]) -> messaging.MulticastMessage:
    location = record.get("location_name") or "{}, {}".format(record.get("latitude"), record.get("longitude"))
    return messaging.MulticastMessage(
        notification=messaging.Notification(
            title=PUSH_TITLES[table],
            body=PUSH_BODIES[table].format(location=location),
        ),
        data={
            "type": table[:-1],
            "id": str(record.get("id")),
            "latitude": str(record.get("latitude")),
            "longitude": str(record.get("longitude")),
        },
        tokens=tokens,
    )


async def notify_responders(table: str, record: Dict) -> None:
    """Push a new alert or report to every approved responder device."""
    if not firebase_ready():
        return
    try:
        tokens = await get_responder_fcm_tokens()
        if not tokens:
            logger.warning("No responder FCM tokens to send push notifications.")
            return
        message = build_push_message(table, record, tokens)
        response = await run_in_threadpool(messaging.send_each_for_multicast, message)
        logger.info(f"Push notifications: {response.success_count} sent, {response.failure_count} failed.")
    except Exception as e:
        logger.error(f"Error sending push notifications: {e}", exc_info=True)


async def save_fcm_token(token: str, current_user: dict):
    try:
        await execute_query(
            "UPDATE profiles SET fcm_token = $1, updated_at = NOW() WHERE id = $2",
            (token, current_user["id"]),
            commit=True
        )
        logger.info(f"FCM token registered for user {current_user['id']}")
        return success_response({}, "FCM token registered")
    except Exception as e:
        logger.error(f"Error saving FCM token for {current_user['id']}: {e}")
        return error_response(str(e), 500)
