import re
from typing import Dict, Any, Optional, Tuple, Iterable

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

NAME_FIELDS = ("full_name", "name", "fullName", "clientname", "client_name", "customerName")
PHONE_FIELDS = ("phone", "mobile", "contact", "mobilenumber", "mobile_number", "contactnumber")
INTEREST_FIELDS = ("interest", "property_type", "propertyType", "projectname", "project_name")
MESSAGE_FIELDS = ("message", "comments", "notes", "customercomments", "customer_comments")
SOURCE_FIELDS = ("sourcename", "source_name", "source")

def _first(data: Dict[str, Any], fields: Iterable[str], limit: int) -> str:
    """First truthy value among portal field aliases, trimmed and truncated."""
    for field in fields:
        if data.get(field):
            return str(data[field]).strip()[:limit]
    return ""

def validate_lead_data(data: Any) -> Tuple[Optional[Dict[str, Any]], Optional[str]]:
    """
    Validate a portal payload and map it onto a leads row.

    Returns:
        (lead, None) when valid, (None, error message) otherwise
    """
    if not isinstance(data, dict):
        return None, "Invalid request body"

    full_name = _first(data, NAME_FIELDS, 100)
    email = str(data.get("email") or "").strip().lower()[:255]
    phone = _first(data, PHONE_FIELDS, 20)

    if not full_name:
        return None, "Name is required"
    if not email or not EMAIL_PATTERN.match(email):
        return None, "Valid email is required"

    interest = _first(data, INTEREST_FIELDS, 255)
    message = _first(data, MESSAGE_FIELDS, 2000)
    external_source = _first(data, SOURCE_FIELDS, 100)

    parts = [message, f"Source: {external_source}" if external_source else ""]
    combined = " | ".join(part for part in parts if part)

    return {
        "full_name": full_name,
        "email": email,
        "phone": phone or None,
        "interest": interest or None,
        "message": combined or None,
    }, None
