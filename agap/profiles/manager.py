import logging
from typing import Optional

import asyncpg
from fastapi import UploadFile

from .models import ProfileUpdate, ResponderSettingsUpdate
from .utils import blank_to_none, split_profile_update, validate_settings
from agap.auth.utils import is_valid_email
from agap.reports.utils import with_signed_image
from agap.shared import config
from agap.shared.db import execute_query, transaction
from agap.shared.geocoding import build_address_string, geocode_address
from agap.shared.response import error_response, success_response
from agap.shared.storage import (
    content_type_for_extension, extract_file_path, file_extension, is_owned_path, is_storage_path,
    sign_if_storage_path, timestamped_path, upload_to_bucket,
)
from agap.shared.utils import serialize_row

logger = logging.getLogger(__name__)

SETTINGS_RESPONDER_FIELDS = ("municipality", "province", "office_address", "contact_number")


async def load_profile(user_id: str) -> Optional[dict]:
    row = await execute_query(
        """
        SELECT p.id, p.email, p.full_name, p.avatar_url, p.role, p.created_at,
               u.first_name, u.last_name, u.address, u.birthday, u.age, u.blood_type, u.gender
        FROM profiles p
        LEFT JOIN user_profiles u ON u.id = p.id
        WHERE p.id = $1
        """,
        (user_id,),
        fetch_one=True
    )
    if not row:
        return None
    profile = serialize_row(row)
    profile["avatar_url"] = sign_if_storage_path(profile["avatar_url"], config.AVATARS_BUCKET, owner=(profile["id"],))
    return profile


async def get_profile(current_user: dict):
    try:
        profile = await load_profile(current_user["id"])
        if not profile:
            return error_response("Profile not found", 404)
        return success_response(profile, "Profile retrieved")
    except Exception as e:
        logger.error(f"Error fetching profile for {current_user['id']}: {e}")
        return error_response(str(e), 500)


async def update_profile(request: ProfileUpdate, current_user: dict):
    """Update account fields on profiles and personal details on user_profiles"""
    fields = request.model_dump(exclude_unset=True)
    logger.info(f"Updating profile for {current_user['id']}: {sorted(fields)}")
    try:
        profile_update, user_profile_update = split_profile_update(fields)
    except ValueError:
        return error_response("Birthday must be in YYYY-MM-DD format", 400)

    avatar = profile_update.get("avatar_url")
    if is_storage_path(avatar, config.AVATARS_BUCKET) and not is_owned_path(
        extract_file_path(avatar, config.AVATARS_BUCKET), current_user["id"]
    ):
        logger.warning(f"Rejected avatar path outside {current_user['id']}/: {avatar}")
        return error_response("Upload a new avatar with the avatar upload endpoint", 400)

    email = blank_to_none(fields.get("email"))
    if email is not None:
        email = email.strip().lower()
        if not is_valid_email(email):
            return error_response("Please enter a valid email address", 400)
        if email != current_user["email"]:
            profile_update["email"] = email

    try:
        async with transaction() as conn:
            if profile_update:
                columns = list(profile_update)
                assignments = ", ".join(f"{c} = ${i}" for i, c in enumerate(columns, start=2))
                await conn.execute(
                    f"UPDATE profiles SET {assignments}, updated_at = NOW() WHERE id = $1",
                    current_user["id"], *profile_update.values(),
                )
            if user_profile_update:
                columns = list(user_profile_update)
                placeholders = ", ".join(f"${i}" for i in range(2, len(columns) + 2))
                updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)
                await conn.execute(
                    f"""
                    INSERT INTO user_profiles (id, {", ".join(columns)}, created_at, updated_at)
                    VALUES ($1, {placeholders}, NOW(), NOW())
                    ON CONFLICT (id) DO UPDATE SET {updates}, updated_at = NOW()
                    """,
                    current_user["id"], *user_profile_update.values(),
                )
    except asyncpg.UniqueViolationError:
        return error_response("Email already registered", 409)
    except Exception as e:
        logger.error(f"Error updating profile for {current_user['id']}: {e}", exc_info=True)
        return error_response(f"Failed to update profile: {e}", 500)

    profile = await load_profile(current_user["id"])
    return success_response(profile, "Profile updated successfully!")


async def upload_avatar(image: UploadFile, current_user: dict):
    file_path = timestamped_path(current_user["id"], filename=image.filename)
    try:
        contents = await image.read()
        if not contents:
            return error_response("Image file is empty", 400)
        await upload_to_bucket(
            config.AVATARS_BUCKET, file_path, contents,
            content_type_for_extension(file_extension(image.filename)),
        )
        await execute_query(
            "UPDATE profiles SET avatar_url = $1, updated_at = NOW() WHERE id = $2",
            (file_path, current_user["id"]),
            commit=True
        )
        logger.info(f"Avatar stored for {current_user['id']} at {file_path}")
        return success_response({
            "avatar_path": file_path,
            "avatar_url": sign_if_storage_path(file_path, config.AVATARS_BUCKET),
        }, "Avatar updated")
    except Exception as e:
        logger.error(f"Error uploading avatar for {current_user['id']}: {e}", exc_info=True)
        return error_response("Failed to upload avatar", 500)


async def get_user_history(current_user: dict, incident_type: Optional[str] = None):
    """The citizen's own alerts and reports, newest first"""
    try:
        query = "SELECT * FROM user_history WHERE user_id = $1"
        params = [current_user["id"]]
        if incident_type:
            query += " AND incident_type = $2"
            params.append(incident_type)
        query += " ORDER BY incident_date DESC"
        rows = await execute_query(query, tuple(params))
        history = [with_signed_image(serialize_row(r)) for r in rows]
        return success_response(history, "History retrieved")
    except Exception as e:
        logger.error(f"Error fetching history for {current_user['id']}: {e}")
        return error_response(str(e), 500)


async def load_settings(user_id: str) -> Optional[dict]:
    row = await execute_query(
        """
        SELECT p.id, p.email, p.full_name, r.municipality, r.province, r.office_address,
               r.contact_number, r.account_status
        FROM profiles p
        LEFT JOIN responder_profiles r ON r.id = p.id
        WHERE p.id = $1
        """,
        (user_id,),
        fetch_one=True
    )
    return serialize_row(row)


async def get_settings(current_user: dict):
    try:
        settings = await load_settings(current_user["id"])
        if not settings:
            return error_response("Profile not found", 404)
        return success_response(settings, "Settings retrieved")
    except Exception as e:
        logger.error(f"Error fetching settings for {current_user['id']}: {e}")
        return error_response(str(e), 500)


async def update_settings(request: ResponderSettingsUpdate, current_user: dict):
    """Save a responder's name and office details"""
    fields = request.model_dump(exclude_unset=True)
    errors = validate_settings(fields)
    if errors:
        logger.warning(f"Settings validation failed for {current_user['id']}: {errors}")
        return error_response(next(iter(errors.values())), 400)

    responder_update = {f: blank_to_none(fields[f]) for f in SETTINGS_RESPONDER_FIELDS if f in fields}
    try:
        async with transaction() as conn:
            if "full_name" in fields:
                await conn.execute(
                    "UPDATE profiles SET full_name = $2, updated_at = NOW() WHERE id = $1",
                    current_user["id"], blank_to_none(fields["full_name"]),
                )
            if responder_update:
                columns = list(responder_update)
                placeholders = ", ".join(f"${i}" for i in range(2, len(columns) + 2))
                updates = ", ".join(f"{c} = EXCLUDED.{c}" for c in columns)
                await conn.execute(
                    f"""
                    INSERT INTO responder_profiles (id, {", ".join(columns)}, created_at, updated_at)
                    VALUES ($1, {placeholders}, NOW(), NOW())
                    ON CONFLICT (id) DO UPDATE SET {updates}, updated_at = NOW()
                    """,
                    current_user["id"], *responder_update.values(),
                )
    except Exception as e:
        logger.error(f"Error updating settings for {current_user['id']}: {e}", exc_info=True)
        return error_response("Failed to save settings", 500)

    settings = await load_settings(current_user["id"])
    return success_response(settings, "Settings saved")


async def get_responder_location(current_user: dict):
    """Map centre for a responder: their geocoded office, else the default centre"""
    default_lat, default_lon = config.DEFAULT_MAP_CENTER
    default = {"latitude": default_lat, "longitude": default_lon, "address": None, "is_default": True}
    try:
        row = await execute_query(
            "SELECT office_address, municipality, province FROM responder_profiles WHERE id = $1",
            (current_user["id"],),
            fetch_one=True
        )
        if not row:
            return success_response(default, "Using default location")
        address = build_address_string(row["office_address"], row["municipality"], row["province"])
        result = await geocode_address(address)
        if not result:
            return success_response({**default, "address": address}, "Using default location")
        return success_response({
            "latitude": result["latitude"],
            "longitude": result["longitude"],
            "address": address,
            "is_default": False,
        }, "Location resolved")
    except Exception as e:
        logger.error(f"Error resolving location for {current_user['id']}: {e}")
        return success_response(default, "Using default location")
