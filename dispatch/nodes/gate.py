from typing import Dict, Any, Tuple
from dispatch.state import NotificationState
from dispatch.events import EventType, event_type_of
from loguru import logger

# event type -> (notification_recipients toggle, default)
EVENT_TOGGLES = {
    EventType.LEAD_CREATED:       ("notify_on_new_lead", True),
    EventType.LEAD_ASSIGNED:      ("notify_on_assignment", True),
    EventType.STATUS_CHANGED:     ("notify_on_status_change", True),
    EventType.NOTE_ADDED:         ("notify_on_note_added", False),
    EventType.FOLLOWUP_SCHEDULED: ("notify_on_followup", True),
    EventType.FOLLOWUP_COMPLETED: ("notify_on_followup", True),
}

def is_event_enabled(event: Dict[str, Any], email_settings: Dict[str, Any],
                     recipient_settings: Dict[str, Any]) -> Tuple[bool, str]:
    """
    Decide whether an event should be dispatched.

    Meetings always go through. Everything else needs email notifications
    enabled (default on) and its per-event toggle on. Unknown types are
    treated as disabled.

    Returns:
        (enabled, message) where message explains a disabled outcome
    """
    event_type = event_type_of(event)
    if event_type is EventType.MEETING_SCHEDULED:
        return True, ""

    if email_settings.get("enabled", True) is False:
        return False, "Email notifications disabled"

    toggle = EVENT_TOGGLES.get(event_type)
    if toggle is None:
        return False, f"Notifications for {event.get('type')} disabled"

    name, default = toggle
    value = recipient_settings.get(name)
    if not (default if value is None else value):
        return False, f"Notifications for {event_type.value} disabled"

    return True, ""

def gate(state: NotificationState) -> NotificationState:
    """Short-circuit events whose notifications are switched off."""
    enabled, message = is_event_enabled(
        state.get("event", {}),
        state.get("email_settings", {}),
        state.get("recipient_settings", {})
    )
    state["enabled"] = enabled

    if not enabled:
        logger.info(message)
        state["message"] = message
        state["recipients"] = []
        state["whatsapp_results"] = []

    return state

def gate_decision(state: NotificationState) -> str:
    return "resolve" if state.get("enabled") else "end"
