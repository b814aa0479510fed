from typing import Optional

from agap.shared import config
from agap.shared.storage import (
    content_type_for_extension, file_extension, is_storage_path, sign_if_storage_path, timestamped_path,
)


def report_image_path(user_id: str, report_id: str, filename: Optional[str], now_ms: Optional[int] = None) -> str:
    return timestamped_path(user_id, report_id, filename=filename, now_ms=now_ms)


def report_image_content_type(filename: Optional[str]) -> str:
    return content_type_for_extension(file_extension(filename))


def is_report_image_path(value: Optional[str]) -> bool:
    return is_storage_path(value, config.REPORT_IMAGES_BUCKET)


def with_signed_image(report: dict) -> dict:
    """Copy of a serialized report whose stored image path is replaced by a signed URL.

    Only paths under `{user_id}/{report_id}/` of that same report are signed.
    """
    if not report or not report.get("image_url"):
        return report
    signed = dict(report)
    signed["image_url"] = sign_if_storage_path(
        report["image_url"], config.REPORT_IMAGES_BUCKET, owner=(report.get("user_id"), report.get("id")),
    )
    return signed
