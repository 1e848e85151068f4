from dispatch.state import NotificationState
from dispatch.events import normalize_payload
from loguru import logger

def capture(state: NotificationState) -> NotificationState:
    """Normalize the inbound event onto canonical snake_case fields."""
    raw = state.get("raw")
    if not isinstance(raw, dict):
        raise ValueError("Notification payload must be a JSON object")

    event = normalize_payload(raw)
    state["event"] = event
    state["debug"] = bool(state.get("debug")) or event.get("debug") is True
    state.setdefault("errors", [])

    logger.info(f"Captured {event.get('type', 'unknown')} event for lead {event.get('lead_id', 'unknown')}")
    return state
