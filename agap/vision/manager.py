import base64
import binascii
import logging
from typing import Optional

import requests
from fastapi.concurrency import run_in_threadpool

from .prompts import SYSTEM_PROMPT, USER_PROMPT
from agap.shared import config
from agap.shared.response import error_response, success_response

logger = logging.getLogger(__name__)

MAX_TOKENS = 500
TEMPERATURE = 0.4


def strip_data_url(image: str) -> str:
    if image.startswith("data:") and "," in image:
        return image.split(",", 1)[1]
    return image


def is_base64(value: str) -> bool:
    try:
        base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def build_payload(image_b64: str) -> dict:
    return {
        "model": config.OPENAI_MODEL,
        "messages": [
            {"role": "system", "content": SYSTEM_PROMPT},
            {
                "role": "user",
                "content": [
                    {"type": "text", "text": USER_PROMPT},
                    {"type": "image_url", "image_url": {"url": f"data:image/jpeg;base64,{image_b64}"}},
                ],
            },
        ],
        "max_tokens": MAX_TOKENS,
        "temperature": TEMPERATURE,
    }


def _upstream_error_message(response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or "Failed to analyze photo"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("message"):
        return error["message"]
    return "Failed to analyze photo"


def _call_openai(image_b64: str):
    headers = {
        "Authorization": f"Bearer {config.OPENAI_API_KEY}",
        "Content-Type": "application/json",
    }
    return requests.post(
        config.OPENAI_API_URL,
        headers=headers,
        json=build_payload(image_b64),
        timeout=config.VISION_TIMEOUT_SECONDS,
    )


async def analyze_photo(body: Optional[dict]):
    """Ask the vision model for a responder-oriented description of a photo"""
    if not config.OPENAI_API_KEY:
        logger.error("OPENAI_API_KEY is not configured")
        return error_response("OpenAI API key not configured", 500)

    image = body.get("image") if isinstance(body, dict) else None
    if not image or not isinstance(image, str):
        return error_response("Missing or invalid 'image' field (base64 string)", 400)
    image_b64 = strip_data_url(image.strip())
    if not is_base64(image_b64):
        return error_response("Missing or invalid 'image' field (base64 string)", 400)

    logger.info(f"Requesting photo analysis ({len(image_b64)} base64 chars)")
    try:
        response = await run_in_threadpool(_call_openai, image_b64)
    except requests.Timeout:
        logger.warning("Photo analysis timed out")
        return error_response("Analysis timeout", 504)
    except requests.RequestException as e:
        logger.error(f"Error calling vision API: {e}")
        return error_response("Failed to analyze photo", 500)

    if not response.ok:
        message = _upstream_error_message(response)
        logger.error(f"Vision API returned status {response.status_code}: {message}")
        return error_response(message, response.status_code)

    try:
        data = response.json()
        content = data.get("choices", [{}])[0].get("message", {}).get("content")
    except (ValueError, AttributeError, IndexError):
        content = None
    if not content or not content.strip():
        logger.error("Vision API returned no description")
        return error_response("Invalid response from AI service", 502)

    return success_response({"description": content.strip()}, "Photo analyzed")
