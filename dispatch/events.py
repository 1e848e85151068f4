import hashlib
from enum import Enum
from typing import Dict, Any, Optional


class EventType(str, Enum):
    LEAD_CREATED       = "lead_created"
    LEAD_ASSIGNED      = "lead_assigned"
    STATUS_CHANGED     = "status_changed"
    NOTE_ADDED         = "note_added"
    FOLLOWUP_SCHEDULED = "followup_scheduled"
    FOLLOWUP_COMPLETED = "followup_completed"
    MEETING_SCHEDULED  = "meeting_scheduled"


class DeliveryStatus(str, Enum):
    SENT           = "sent"
    FAILED         = "failed"
    SKIPPED_NO_API = "skipped_no_api"
    INVALID_NUMBER = "invalid_number"
    ERROR          = "error"


# canonical snake_case field -> camelCase alias sent by the scheduler UI
FIELD_ALIASES = {
    "lead_id":           "leadId",
    "lead_name":         "leadName",
    "lead_email":        "leadEmail",
    "lead_phone":        "leadPhone",
    "lead_source":       "leadSource",
    "lead_interest":     "leadInterest",
    "assigned_to_email": "assignedToEmail",
    "assigned_to_name":  "assignedToName",
    "old_status":        "oldStatus",
    "new_status":        "newStatus",
    "note_content":      "noteContent",
    "followup_title":    "followupTitle",
    "followup_date":     "followupDate",
    "meeting_title":     "meetingTitle",
    "meeting_date":      "meetingDate",
    "meeting_location":  "meetingLocation",
    "meeting_type":      "meetingType",
    "notify_customer":   "notifyCustomer",
    "notify_admin":      "notifyAdmin",
    "send_whatsapp":     "sendWhatsapp",
    "event_id":          "eventId",
}

DEDUPE_FIELDS = (
    "old_status",
    "new_status",
    "followup_title",
    "followup_date",
    "meeting_title",
    "meeting_date",
    "note_content",
    "timestamp",
)


def _is_set(value: Any) -> bool:
    return value is not None and value != ""


def normalize_payload(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map an inbound event onto its canonical snake_case shape.

    Callers send either snake_case (`lead_id`) or camelCase (`leadId`) names.
    The snake_case value wins when both are set; an empty string counts as
    unset. camelCase keys are dropped, anything unrecognised passes through,
    and fields present under neither name stay absent.
    """
    aliases = set(FIELD_ALIASES.values())
    event = {key: value for key, value in raw.items() if key not in aliases}

    for field, alias in FIELD_ALIASES.items():
        value = raw.get(field)
        if not _is_set(value):
            value = raw.get(alias)
        if _is_set(value):
            event[field] = value
        else:
            event.pop(field, None)

    return event


def event_type_of(event: Dict[str, Any]) -> Optional[EventType]:
    """Return the EventType for an event, or None when it is missing/unknown."""
    try:
        return EventType(event.get("type"))
    except ValueError:
        return None


def dedupe_key(event: Dict[str, Any]) -> Optional[str]:
    """Key identifying a repeated event, or None when it cannot be identified."""
    if _is_set(event.get("event_id")):
        return f"notify:{event['event_id']}"

    if not _is_set(event.get("lead_id")):
        return None

    parts = [event.get("type"), event.get("lead_id")]
    parts.extend(event.get(field) for field in DEDUPE_FIELDS)
    material = "|".join("" if part is None else str(part) for part in parts)
    return f"notify:{hashlib.sha256(material.encode('utf-8')).hexdigest()}"
