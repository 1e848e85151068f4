from dispatch.state import NotificationState
from dispatch.templates import (
    render_email,
    render_customer_meeting_email,
    render_whatsapp,
    render_customer_whatsapp,
)
from dispatch.nodes.resolve import addresses, EMAIL, WHATSAPP, CUSTOMER
from loguru import logger

def render(state: NotificationState) -> NotificationState:
    """Render the email and WhatsApp copy needed by the delivery plan."""
    event = state.get("event", {})
    plan = state.get("plan", [])

    state["email"] = render_email(event)
    state["whatsapp_message"] = render_whatsapp(event)

    if addresses(plan, EMAIL, CUSTOMER):
        state["customer_email"] = render_customer_meeting_email(event)
    if addresses(plan, WHATSAPP, CUSTOMER):
        state["customer_whatsapp_message"] = render_customer_whatsapp(event)

    logger.info(f"Rendered notification: {state['email']['subject']}")
    return state
