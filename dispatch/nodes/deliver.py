from typing import Dict, Any
from dispatch.state import NotificationState
from dispatch.events import DeliveryStatus
from dispatch.templates import BRAND_NAME
from dispatch.nodes.resolve import addresses, EMAIL, WHATSAPP, TEAM, CUSTOMER
from connectors.resend import send_email
from connectors.whatsapp import send_whatsapp_message
from loguru import logger

DEFAULT_FROM_EMAIL = "notifications@bullstarrealty.ae"
DEFAULT_FROM_NAME = "Bull Star Realty CRM"

def _email_error(message: str) -> Dict[str, Any]:
    return {"data": None, "error": {"name": "dispatch_error", "message": message}}

def deliver(state: NotificationState) -> NotificationState:
    """Send the team email, the customer channels, then the team WhatsApp fan-out."""
    plan = state.get("plan", [])
    email_settings = state.get("email_settings", {})
    whatsapp_settings = state.get("whatsapp_settings", {})
    errors = state.setdefault("errors", [])

    from_email = email_settings.get("from_email") or DEFAULT_FROM_EMAIL
    from_name = email_settings.get("from_name") or DEFAULT_FROM_NAME

    # Internal team email
    recipients = addresses(plan, EMAIL, TEAM)
    state["email_result"] = {"data": None, "error": None}
    if recipients:
        try:
            state["email_result"] = send_email(
                f"{from_name} <{from_email}>",
                recipients,
                state["email"]["subject"],
                state["email"]["html"]
            )
        except Exception as e:
            logger.error(f"Team email failed: {e}")
            errors.append(f"email_failed: {e}")
            state["email_result"] = _email_error(str(e))

    # Customer meeting confirmation
    state["customer_email_result"] = None
    state["customer_whatsapp_result"] = None

    for customer_email in addresses(plan, EMAIL, CUSTOMER):
        try:
            state["customer_email_result"] = send_email(
                f"{BRAND_NAME} <{from_email}>",
                [customer_email],
                state["customer_email"]["subject"],
                state["customer_email"]["html"]
            )
            logger.info(f"Customer meeting email result for {customer_email}: {state['customer_email_result']}")
        except Exception as e:
            logger.warning(f"Failed to send customer meeting email: {e}")
            errors.append(f"customer_email_failed: {e}")
            state["customer_email_result"] = _email_error(str(e))

    for customer_phone in addresses(plan, WHATSAPP, CUSTOMER):
        state["customer_whatsapp_result"] = _send_whatsapp(
            whatsapp_settings, customer_phone, state["customer_whatsapp_message"], errors
        )
        logger.info(f"Customer WhatsApp result: {state['customer_whatsapp_result']}")

    # Team WhatsApp
    state["whatsapp_results"] = [
        _send_whatsapp(whatsapp_settings, phone, state["whatsapp_message"], errors)
        for phone in addresses(plan, WHATSAPP, TEAM)
    ]

    state["message"] = f"Notification sent to {len(recipients)} recipient(s)"
    return state

def _send_whatsapp(settings: Dict[str, Any], phone: str, message: str, errors: list) -> Dict[str, Any]:
    try:
        return send_whatsapp_message(settings, phone, message)
    except Exception as e:
        logger.warning(f"WhatsApp send failed for {phone}: {e}")
        errors.append(f"whatsapp_failed: {e}")
        return {"phone": phone, "status": DeliveryStatus.ERROR.value}
