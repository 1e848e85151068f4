from typing import Dict, Any, List, Iterable
from dispatch.state import NotificationState, Recipient
from dispatch.events import EventType, event_type_of
from connectors.supabase_store import fetch_manager_emails
from loguru import logger

HARDCODED_ADMIN_EMAILS = [
    "support@bullstarrealty.ae",
    "shivendra.singh@bullrealtyglobal.com",
    "vaibhav@bullrealtyglobal.com",
]

# retired admin mailboxes; never notified even when still configured
LEGACY_ADMIN_EMAILS = frozenset({
    "admin.india@bullstarrealty.in",
    "admin.dubai@bullstarrealty.ae",
})

EMAIL = "email"
WHATSAPP = "whatsapp"
TEAM = "team"
CUSTOMER = "customer"

def as_list(value: Any) -> List[Any]:
    """Setting lists occasionally arrive as a single string."""
    if not value:
        return []
    if isinstance(value, str):
        return [value]
    return list(value)

def clean_emails(emails: Iterable[Any]) -> List[str]:
    """Trim, drop blanks and legacy admins, dedupe case-insensitively keeping first spelling."""
    seen = set()
    cleaned = []
    for email in emails:
        if not isinstance(email, str):
            continue
        email = email.strip()
        key = email.lower()
        if not email or key in LEGACY_ADMIN_EMAILS or key in seen:
            continue
        seen.add(key)
        cleaned.append(email)
    return cleaned

def clean_phones(phones: Iterable[Any]) -> List[str]:
    seen = set()
    cleaned = []
    for phone in phones:
        phone = str(phone).strip() if phone is not None else ""
        if phone and phone not in seen:
            seen.add(phone)
            cleaned.append(phone)
    return cleaned

def team_emails(event: Dict[str, Any], recipient_settings: Dict[str, Any],
                manager_emails: List[str]) -> List[str]:
    """Internal email recipients for an event."""
    emails = HARDCODED_ADMIN_EMAILS + as_list(recipient_settings.get("admin_emails"))

    if event_type_of(event) is EventType.MEETING_SCHEDULED:
        emails += manager_emails
        emails += as_list(recipient_settings.get("manager_emails"))

    if event.get("assigned_to_email"):
        emails.append(event["assigned_to_email"])

    return clean_emails(emails)

def team_phones(event: Dict[str, Any], whatsapp_settings: Dict[str, Any]) -> List[str]:
    """Internal WhatsApp targets: admins always, the wider team for meetings."""
    phones = as_list(whatsapp_settings.get("admin_phones"))
    if event_type_of(event) is EventType.MEETING_SCHEDULED:
        phones += as_list(whatsapp_settings.get("team_phones"))
    return clean_phones(phones)

def resolve_recipients(event: Dict[str, Any], recipient_settings: Dict[str, Any],
                       whatsapp_settings: Dict[str, Any], manager_emails: List[str]) -> List[Recipient]:
    """
    Build the full delivery plan for an event as {channel, audience, address} entries.

    Args:
        event: Canonical event
        recipient_settings: notification_recipients setting value
        whatsapp_settings: whatsapp_notifications setting value
        manager_emails: Profile emails of users with the manager role

    Returns:
        Team email, team WhatsApp, and (meetings only) customer entries
    """
    plan: List[Recipient] = [
        {"channel": EMAIL, "audience": TEAM, "address": email}
        for email in team_emails(event, recipient_settings, manager_emails)
    ]

    whatsapp_enabled = bool(whatsapp_settings.get("enabled"))

    if whatsapp_enabled and event.get("send_whatsapp") is not False:
        plan.extend(
            {"channel": WHATSAPP, "audience": TEAM, "address": phone}
            for phone in team_phones(event, whatsapp_settings)
        )

    is_meeting = event_type_of(event) is EventType.MEETING_SCHEDULED
    if is_meeting and event.get("notify_customer") is not False:
        customer_email = (event.get("lead_email") or "").strip()
        if customer_email:
            plan.append({"channel": EMAIL, "audience": CUSTOMER, "address": customer_email})

        customer_phone = str(event.get("lead_phone") or "").strip()
        if customer_phone and whatsapp_enabled:
            plan.append({"channel": WHATSAPP, "audience": CUSTOMER, "address": customer_phone})

    return plan

def addresses(plan: List[Recipient], channel: str, audience: str) -> List[str]:
    return [r["address"] for r in plan if r["channel"] == channel and r["audience"] == audience]

def resolve(state: NotificationState) -> NotificationState:
    """Resolve every email and WhatsApp target for the event."""
    event = state.get("event", {})

    manager_emails = []
    if event_type_of(event) is EventType.MEETING_SCHEDULED:
        manager_emails = fetch_manager_emails()

    plan = resolve_recipients(
        event,
        state.get("recipient_settings", {}),
        state.get("whatsapp_settings", {}),
        manager_emails
    )

    state["plan"] = plan
    state["recipients"] = addresses(plan, EMAIL, TEAM)

    logger.info(f"Sending to recipients: {state['recipients']}")
    return state
