import logging
import re
import time
from typing import Optional

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from starlette.concurrency import run_in_threadpool

from agap.shared import config

logger = logging.getLogger("shared.storage")

# Files are stored privately and only handed out through signed URLs
DELIVERY_TYPE = "authenticated"

_STORAGE_PATH_PATTERN = re.compile(r"^[^/]+/[^/]+")


def _ensure_cloudinary_configured() -> None:
    """Configure Cloudinary from env; raise informative error if missing."""
    cloud_name = config.CLOUDINARY_CLOUD_NAME
    api_key = config.CLOUDINARY_API_KEY
    api_secret = config.CLOUDINARY_API_SECRET
    if not all([cloud_name, api_key, api_secret]):
        raise RuntimeError(
            "Cloudinary env vars missing. Set CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY, CLOUDINARY_API_SECRET."
        )
    cloudinary.config(
        cloud_name=cloud_name,
        api_key=api_key,
        api_secret=api_secret,
        secure=True,
    )


def _split_extension(file_path: str):
    stem, dot, ext = file_path.rpartition(".")
    if not dot or "/" in ext:
        return file_path, ""
    return stem, ext.lower()


def _public_id(bucket: str, file_path: str) -> str:
    stem, _ = _split_extension(file_path.lstrip("/"))
    return f"{bucket}/{stem}"


def content_type_for_extension(ext: str) -> str:
    ext = (ext or "jpg").lower()
    return f"image/{'jpeg' if ext in ('jpg', 'jpeg') else ext}"


async def upload_to_bucket(bucket: str, file_path: str, file, content_type: Optional[str] = None) -> str:
    """Upload a file object or bytes into a private bucket and return the stored path.

    The path (not a URL) is what gets persisted on the row; readers turn it
    into a short-lived URL with get_signed_url.
    """
    _ensure_cloudinary_configured()
    _, ext = _split_extension(file_path)
    upload_options = {
        "public_id": _public_id(bucket, file_path),
        "resource_type": "image",
        "type": DELIVERY_TYPE,
        "overwrite": False,
    }
    if ext:
        upload_options["format"] = ext
    logger.info("Uploading %s to bucket %s (%s)", file_path, bucket, content_type)
    result = await run_in_threadpool(cloudinary.uploader.upload, file, **upload_options)
    if not result.get("public_id"):
        raise RuntimeError("Storage upload did not return a public id")
    logger.debug("Upload successful: %s", result.get("public_id"))
    return file_path


def get_signed_url(bucket: str, file_path: str, expires_in: Optional[int] = None) -> Optional[str]:
    """Return a time limited URL for a stored file, or None if it cannot be signed."""
    expires_in = expires_in or config.SIGNED_URL_TTL_SECONDS
    clean_path = (file_path or "").lstrip("/")
    if not clean_path:
        return None
    try:
        _ensure_cloudinary_configured()
        _, ext = _split_extension(clean_path)
        url = cloudinary.utils.private_download_url(
            _public_id(bucket, clean_path),
            ext or "jpg",
            resource_type="image",
            type=DELIVERY_TYPE,
            expires_at=int(time.time()) + expires_in,
        )
        logger.debug("Signed URL created for %s/%s", bucket, clean_path)
        return url
    except Exception as e:
        logger.error(f"Error creating signed URL for {bucket}/{clean_path}: {e}")
        return None


def is_storage_path(url_or_path, bucket: str) -> bool:
    """True when the value points into the given bucket rather than at a local or foreign file."""
    if not url_or_path or not isinstance(url_or_path, str):
        return False
    value = url_or_path.strip()
    if not value or value.startswith("file://"):
        return False
    if value.startswith("http://") or value.startswith("https://"):
        return f"/{bucket}/" in value
    if bucket in value:
        return True
    return bool(_STORAGE_PATH_PATTERN.match(value))


def extract_file_path(url_or_path, bucket: str) -> str:
    """Strip scheme, host, bucket prefix, query string and slashes down to the path inside the bucket."""
    if not url_or_path or not isinstance(url_or_path, str):
        return url_or_path or ""

    path = url_or_path.strip()
    marker = f"{bucket}/"
    if path.startswith("http://") or path.startswith("https://"):
        if marker not in path:
            return path
        path = path[path.index(marker) + len(marker):]
    elif marker in path:
        path = path.split(marker)[-1] or path

    path = path.split("?")[0].split("#")[0]
    return path.strip("/")


def is_owned_path(file_path: str, *prefix: str) -> bool:
    """True when the bucket path starts with the given segments, e.g. (user_id, report_id)."""
    segments = [s for s in (file_path or "").split("/") if s]
    owner = [str(p) for p in prefix]
    return len(segments) > len(owner) and segments[:len(owner)] == owner


def sign_if_storage_path(url_or_path, bucket: str, owner: Optional[tuple] = None) -> Optional[str]:
    """
    Swap a stored path for a signed URL; anything else is passed through unchanged.

    With `owner`, a path outside that prefix is never signed and comes back as None.
    """
    if not is_storage_path(url_or_path, bucket):
        return url_or_path
    file_path = extract_file_path(url_or_path, bucket)
    if owner is not None and not is_owned_path(file_path, *owner):
        logger.warning(f"Refusing to sign {bucket}/{file_path} outside {'/'.join(map(str, owner))}/")
        return None
    signed = get_signed_url(bucket, file_path)
    return signed or url_or_path


def file_extension(filename: Optional[str], default: str = "jpg") -> str:
    _, ext = _split_extension(filename or "")
    return ext or default


def timestamped_path(*prefix: str, filename: Optional[str] = None, now_ms: Optional[int] = None) -> str:
    """`prefix/.../<epoch ms>.<ext>`, the layout used for every uploaded image."""
    now_ms = int(time.time() * 1000) if now_ms is None else now_ms
    return "/".join([*prefix, f"{now_ms}.{file_extension(filename)}"])
