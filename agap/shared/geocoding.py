import logging
import time
from typing import Dict, Optional

import requests
from starlette.concurrency import run_in_threadpool

from agap.shared import config

logger = logging.getLogger(__name__)

NOMINATIM_SEARCH_URL = "https://nominatim.openstreetmap.org/search"
# Nominatim usage policy asks for at most one request per second
RATE_LIMIT_DELAY_SECONDS = 1.0

# Simple in-memory cache to avoid repeated API calls
_geocode_cache: Dict[str, dict] = {}


def build_address_string(office_address: Optional[str], municipality: Optional[str], province: Optional[str]) -> Optional[str]:
    """Join the non-blank parts of a responder's office address, or None when all are blank."""
    parts = [p.strip() for p in (office_address, municipality, province) if p and p.strip()]
    if not parts:
        return None
    return ", ".join(parts) + ", Philippines"


def _search(address: str) -> Optional[dict]:
    params = {
        "q": address,
        "format": "json",
        "limit": 1,
        "addressdetails": 1,
    }
    headers = {"User-Agent": config.GEOCODING_USER_AGENT}
    resp = requests.get(NOMINATIM_SEARCH_URL, params=params, headers=headers, timeout=5.0)
    if resp.status_code != 200:
        logger.error(f"Nominatim search failed with status {resp.status_code}: {resp.text[:200]}")
        return None

    data = resp.json()
    if not isinstance(data, list) or not data:
        logger.warning(f"No geocoding results found for address: {address}")
        return None

    first = data[0]
    return {
        "latitude": float(first["lat"]),
        "longitude": float(first["lon"]),
        "display_name": first.get("display_name") or address,
    }


def geocode_address_sync(address: Optional[str]) -> Optional[dict]:
    if not address or not address.strip():
        return None
    normalized = address.strip()
    if normalized in _geocode_cache:
        return _geocode_cache[normalized]

    try:
        result = _search(normalized)
    except Exception as e:
        logger.error(f"Error geocoding address '{normalized}': {e}")
        return None

    if result:
        _geocode_cache[normalized] = result
        time.sleep(RATE_LIMIT_DELAY_SECONDS)
    return result


async def geocode_address(address: Optional[str]) -> Optional[dict]:
    """Resolve an address to ``{latitude, longitude, display_name}`` or None."""
    return await run_in_threadpool(geocode_address_sync, address)


def clear_geocode_cache() -> None:
    _geocode_cache.clear()
