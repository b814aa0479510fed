import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from fastapi import WebSocket

from agap.auth.manager import load_user
from agap.shared.polling import PollTimeout, poll_status

logger = logging.getLogger(__name__)

EVENTS = ("INSERT", "UPDATE", "DELETE", "*")
FILTER_OPS = ("eq", "neq", "lt", "lte", "gt", "gte", "in")


class InvalidFilter(ValueError):
    pass


@dataclass(frozen=True)
class RowFilter:
    column: str
    op: str
    value: Any


@dataclass
class Subscription:
    table: str
    event: str = "*"
    row_filter: Optional[RowFilter] = None
    # Rows outside the scope are never delivered, whatever the client filter says
    scope: Optional[RowFilter] = None


class SubscriptionRefused(PermissionError):
    pass


# Tables every approved responder sees in full
STAFF_TABLES = ("alerts", "reports", "responder_assignments")
# Tables a citizen may follow, limited to rows they own
CITIZEN_TABLES = ("alerts", "reports")


def is_staff(user: dict) -> bool:
    if user["role"] == "admin":
        return True
    return user["role"] == "responder" and user.get("account_status") == "approved"


def subscription_scope(table: str, user: dict) -> Optional[RowFilter]:
    """Row scope for a subscriber on a table; raises SubscriptionRefused when the table is off limits."""
    if user["role"] == "admin":
        return None
    if table == "profiles":
        return RowFilter("id", "eq", user["id"])
    if table in STAFF_TABLES and is_staff(user):
        return None
    if table in CITIZEN_TABLES and user["role"] == "user":
        return RowFilter("user_id", "eq", user["id"])
    raise SubscriptionRefused(f"Not allowed to subscribe to {table}")


def parse_filter(expression: Optional[str]) -> Optional[RowFilter]:
    """Parse `column=op.value`, e.g. `status=eq.pending` or `id=in.(a,b)`."""
    if not expression:
        return None
    column, sep, rest = expression.partition("=")
    op, dot, value = rest.partition(".")
    if not sep or not dot or not column or op not in FILTER_OPS:
        raise InvalidFilter(f"Invalid filter: {expression}")
    if op == "in":
        value = value.strip()
        if value.startswith("(") and value.endswith(")"):
            value = value[1:-1]
        value = tuple(v.strip() for v in value.split(",") if v.strip())
    return RowFilter(column.strip(), op, value)


def _coerce(actual: Any, expected: str) -> Tuple[Any, Any]:
    """Compare numbers as numbers, everything else as text."""
    if isinstance(actual, bool):
        return str(actual).lower(), expected.lower()
    if isinstance(actual, (int, float)):
        try:
            return actual, float(expected)
        except ValueError:
            return str(actual), expected
    return str(actual), expected


def matches(row_filter: Optional[RowFilter], record: Optional[Dict[str, Any]]) -> bool:
    if row_filter is None:
        return True
    if not record or row_filter.column not in record:
        return False
    actual = record[row_filter.column]
    if actual is None:
        return False
    if row_filter.op == "in":
        return str(actual) in row_filter.value
    left, right = _coerce(actual, row_filter.value)
    try:
        if row_filter.op == "eq":
            return left == right
        if row_filter.op == "neq":
            return left != right
        if row_filter.op == "lt":
            return left < right
        if row_filter.op == "lte":
            return left <= right
        if row_filter.op == "gt":
            return left > right
        if row_filter.op == "gte":
            return left >= right
    except TypeError:
        return False
    return False


def wants(subscription: Subscription, table: str, event: str, new: Optional[dict], old: Optional[dict]) -> bool:
    if subscription.table != table:
        return False
    if subscription.event not in ("*", event):
        return False
    record = old if event == "DELETE" else new
    if subscription.scope is not None and not matches(subscription.scope, record):
        return False
    return matches(subscription.row_filter, record)


class ConnectionManager:
    """In-memory WebSocket connections keyed by table subscription."""
    def __init__(self) -> None:
        self._subscriptions: Dict[WebSocket, List[Subscription]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, subscription: Subscription) -> None:
        async with self._lock:
            self._subscriptions.setdefault(websocket, []).append(subscription)
        logger.debug(f"Subscribed socket to {subscription.table}/{subscription.event}")

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._subscriptions.pop(websocket, None)

    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    async def broadcast(self, table: str, event: str, payload: dict,
                        new: Optional[dict] = None, old: Optional[dict] = None) -> int:
        # Copy to avoid size change during iteration
        async with self._lock:
            targets = [
                ws for ws, subs in self._subscriptions.items()
                if any(wants(s, table, event, new, old) for s in subs)
            ]
        delivered = 0
        for ws in targets:
            try:
                await ws.send_json(payload)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping broken realtime connection: {e}")
                await self.disconnect(ws)
        return delivered


manager = ConnectionManager()


async def authenticate_socket(websocket: WebSocket) -> Optional[dict]:
    """
    Read the first message ({"token": ...}) and return the signed-in user.

    Closes the socket with 4001 on a missing or bad token. A client that leaves
    before authenticating raises WebSocketDisconnect to the caller.
    """
    try:
        first_message = await websocket.receive_text()
        token = json.loads(first_message).get("token")
    except (ValueError, AttributeError):
        await websocket.close(code=4001, reason="No token provided")
        return None
    if not token:
        await websocket.close(code=4001, reason="No token provided")
        return None
    user = await load_user(token)
    if not user:
        logger.warning("Invalid token in WebSocket connection")
        await websocket.close(code=4001, reason="Invalid token")
        return None
    return user


async def stream_status(websocket: WebSocket, check) -> None:
    """Run the status poller and relay every result over the socket, then close it."""
    async def send_update(status: dict) -> None:
        await websocket.send_json({"event": "status", "data": status})

    async def send_error(message: str) -> None:
        await websocket.send_json({"event": "error", "message": message})

    try:
        final = await poll_status(check, on_update=send_update, on_error=send_error)
        await websocket.send_json({"event": "done", "data": final})
    except PollTimeout as e:
        await websocket.send_json({"event": "timeout", "message": str(e), "data": e.last_status})
    await websocket.close()
