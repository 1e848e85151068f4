import json
from typing import Dict, Any, List
from dispatch.state import NotificationState
from connectors.supabase_store import fetch_notification_settings
from loguru import logger

SETTING_KEYS = ("email_notifications", "notification_recipients", "whatsapp_notifications")

def _setting_value(row: Dict[str, Any]) -> Dict[str, Any]:
    value = row.get("setting_value")
    if isinstance(value, str):
        try:
            value = json.loads(value)
        except json.JSONDecodeError:
            logger.error(f"Invalid JSON in setting {row.get('setting_key')}, using defaults")
            return {}
    return value if isinstance(value, dict) else {}

def index_settings(rows: List[Dict[str, Any]]) -> Dict[str, Dict[str, Any]]:
    """Setting values keyed by setting_key; inactive rows count as missing."""
    settings = {}
    for row in rows:
        if row.get("is_active") is False:
            continue
        settings[row.get("setting_key")] = _setting_value(row)
    return settings

def load_settings(state: NotificationState) -> NotificationState:
    """Load the notification settings rows consulted on every dispatch."""
    settings = index_settings(fetch_notification_settings(SETTING_KEYS))

    state["email_settings"] = settings.get("email_notifications", {})
    state["recipient_settings"] = settings.get("notification_recipients", {})
    state["whatsapp_settings"] = settings.get("whatsapp_notifications", {})

    logger.info(f"Loaded notification settings: {sorted(k for k in settings if k)}")
    return state
