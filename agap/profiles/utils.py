import re
from datetime import date
from typing import Optional

PHONE_FORMATTING = re.compile(r"[\s\-()+]")
MAX_TEXT_LENGTH = 255

PROFILE_FIELDS = ("full_name", "avatar_url")
USER_PROFILE_FIELDS = ("first_name", "last_name", "address", "birthday", "age", "blood_type", "gender")
SETTINGS_TEXT_FIELDS = {
    "full_name": "Full name",
    "municipality": "Municipality",
    "province": "Province",
    "office_address": "Office address",
}


def validate_phone_number(phone: Optional[str]) -> Optional[str]:
    if not phone or not phone.strip():
        return None
    cleaned = PHONE_FORMATTING.sub("", phone)
    if not cleaned.isdigit() or not cleaned.isascii():
        return "Contact number must contain only digits and common formatting characters"
    if len(cleaned) < 7 or len(cleaned) > 15:
        return "Contact number must be between 7 and 15 digits"
    return None


def validate_text_field(value: Optional[str], field_name: str, max_length: int = MAX_TEXT_LENGTH) -> Optional[str]:
    if not value or not value.strip():
        return None
    if len(value) > max_length:
        return f"{field_name} must be less than {max_length} characters"
    return None


def validate_settings(values: dict) -> dict:
    """field -> error message, for every invalid field"""
    errors = {}
    for field, label in SETTINGS_TEXT_FIELDS.items():
        error = validate_text_field(values.get(field), label)
        if error:
            errors[field] = error
    error = validate_phone_number(values.get("contact_number"))
    if error:
        errors["contact_number"] = error
    return errors


def blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


def parse_age(value) -> Optional[int]:
    """Leading integer of the input (``"42 years"`` -> 42); None when there is none."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    match = re.match(r"^\s*([+-]?\d+)", str(value))
    return int(match.group(1)) if match else None


def parse_birthday(value) -> Optional[date]:
    value = blank_to_none(value)
    if value is None:
        return None
    return date.fromisoformat(value)


def split_profile_update(fields: dict):
    """Split submitted fields into (profiles update, user_profiles update) with blanks as NULL"""
    profile_update = {f: blank_to_none(fields[f]) for f in PROFILE_FIELDS if f in fields}
    user_profile_update = {}
    for field in USER_PROFILE_FIELDS:
        if field not in fields:
            continue
        if field == "age":
            user_profile_update[field] = parse_age(fields[field])
        elif field == "birthday":
            user_profile_update[field] = parse_birthday(fields[field])
        else:
            user_profile_update[field] = blank_to_none(fields[field])
    return profile_update, user_profile_update
