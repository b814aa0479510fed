from datetime import datetime
from typing import Dict, Optional, Union

# Fields shared by alerts and reports
COMMON_FIELDS = ("id", "status", "latitude", "longitude", "location_name",
                 "created_at", "updated_at", "canceled_at", "user_id")
ALERT_FIELDS = ("victim_name", "victim_age", "victim_blood_type", "victim_sex")
REPORT_FIELDS = ("image_url", "description")


def _to_incident(kind: str, row: dict, extra_fields, assignment: Optional[dict]) -> dict:
    incident = {"type": kind}
    for field in COMMON_FIELDS + extra_fields:
        incident[field] = row.get(field)
    incident["timestamp"] = row.get("created_at")
    incident["assignment"] = assignment or None
    incident["is_assigned"] = bool(assignment)
    incident["assignment_status"] = assignment.get("response_status") if assignment else None
    return incident


def alert_to_incident(alert: dict, assignment: Optional[dict] = None) -> dict:
    return _to_incident("alert", alert, ALERT_FIELDS, assignment)


def report_to_incident(report: dict, assignment: Optional[dict] = None) -> dict:
    return _to_incident("report", report, REPORT_FIELDS, assignment)


def format_timestamp(value: Union[str, datetime, None]) -> str:
    """Render like `Jan 5, 2025, 03:07 PM`. Unparseable input is returned as is."""
    if value is None:
        return ""
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
    return f"{value.strftime('%b')} {value.day}, {value.year}, {value.strftime('%I:%M %p')}"


def incident_to_history_item(
    incident: dict,
    reporter_names: Optional[Dict[str, str]] = None,
    alert_creator_names: Optional[Dict[str, str]] = None,
) -> dict:
    """Flatten an incident into the card shown in the responder history list"""
    reporter_names = reporter_names or {}
    alert_creator_names = alert_creator_names or {}
    is_alert = incident["type"] == "alert"

    if is_alert:
        name = incident.get("victim_name") or alert_creator_names.get(incident["id"]) or "Unknown"
    else:
        name = reporter_names.get(incident["id"]) or "Unknown Reporter"

    return {
        "id": incident["id"],
        "name": name,
        "location": incident.get("location_name") or "Unknown location",
        "time": format_timestamp(incident.get("created_at")),
        "type": "Emergency Alert" if is_alert else "Emergency Report",
        "status": "accepted" if incident.get("assignment_status") == "accepted" else "dismissed",
        "age": incident.get("victim_age") or None,
        "blood_type": incident.get("victim_blood_type") or None,
        "sex": incident.get("victim_sex") or None,
        "image_url": incident.get("image_url") or None,
        "description": incident.get("description") or None,
        "latitude": incident.get("latitude"),
        "longitude": incident.get("longitude"),
        "timestamp": incident.get("timestamp"),
    }


def newest_first(incidents: list) -> list:
    # ISO-8601 strings from the same database sort chronologically
    return sorted(incidents, key=lambda i: i.get("created_at") or "", reverse=True)
