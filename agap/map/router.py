import logging

from fastapi import APIRouter, Depends

from agap.auth.manager import require_approved_responder
from agap.shared.db import execute_query
from agap.shared.response import error_response, success_response
from agap.shared.utils import serialize_row

logger = logging.getLogger(__name__)

router = APIRouter()

MARKERS_QUERY = """
    SELECT id, 'alert' AS type, latitude, longitude, location_name, created_at
    FROM alerts WHERE status = 'pending'
    UNION ALL
    SELECT id, 'report' AS type, latitude, longitude, location_name, created_at
    FROM reports WHERE status = 'pending'
    ORDER BY created_at DESC
"""

async def get_pending_markers():
    rows = await execute_query(MARKERS_QUERY)
    return [serialize_row(r) for r in rows]

@router.get("/")
async def get_map_locations(current_user: dict = Depends(require_approved_responder)):
    """
    Endpoint to fetch map markers for every pending alert and report.
    """
    try:
        markers = await get_pending_markers()
        return success_response(markers, "Map data fetched successfully")
    except Exception as e:
        logger.error(f"Error fetching map markers: {e}")
        return error_response(str(e), 500)
