import asyncio
import json
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock

USER_ID = "11111111-1111-1111-1111-111111111111"
OTHER_USER_ID = "22222222-2222-2222-2222-222222222222"
RESPONDER_ID = "33333333-3333-3333-3333-333333333333"
ALERT_ID = "44444444-4444-4444-4444-444444444444"
REPORT_ID = "55555555-5555-5555-5555-555555555555"
ASSIGNMENT_ID = "66666666-6666-6666-6666-666666666666"

CITIZEN = {"id": USER_ID, "email": "juan@example.com", "full_name": "Juan Dela Cruz",
           "role": "user", "account_status": None}
RESPONDER = {"id": RESPONDER_ID, "email": "bfp@example.com", "full_name": "BFP Iloilo",
             "role": "responder", "account_status": "approved"}
ADMIN = {"id": OTHER_USER_ID, "email": "admin@agap.ph", "full_name": "Admin",
         "role": "admin", "account_status": None}


def run(coro):
    return asyncio.run(coro)


def body(response):
    """Decoded JSON envelope of a JSONResponse returned by a manager"""
    return json.loads(response.body)


class FakeTransaction:
    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        return False


class FakeConnection:
    def __init__(self, fetchrow_results=None):
        self.fetchrow = AsyncMock(side_effect=fetchrow_results)
        self.execute = AsyncMock(return_value="OK")

    def transaction(self):
        return FakeTransaction()


def fake_transaction(conn):
    @asynccontextmanager
    async def transaction():
        yield conn
    return transaction
