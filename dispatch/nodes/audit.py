import uuid
from dispatch.state import NotificationState
from connectors.supabase_store import insert_integration_log
from loguru import logger

INTEGRATION_TYPE = "resend_email"

def build_log_row(state: NotificationState) -> dict:
    """integration_logs row describing one dispatch attempt."""
    event = state.get("event", {})
    email_result = state.get("email_result") or {}
    error = email_result.get("error") or {}

    return {
        "integration_id": str(uuid.uuid4()),
        "integration_type": INTEGRATION_TYPE,
        "source": "custom",
        "status": "error" if error else "sent",
        "ip_address": state.get("client_ip"),
        "lead_id": event.get("lead_id"),
        "request_payload": event,
        "response_payload": {
            "email": email_result,
            "whatsapp": state.get("whatsapp_results", []),
            "customer_email": state.get("customer_email_result"),
            "customer_whatsapp": state.get("customer_whatsapp_result"),
        },
        "error_message": error.get("message"),
    }

def audit(state: NotificationState) -> NotificationState:
    """Record the dispatch in integration_logs; failures here never fail the request."""
    try:
        insert_integration_log(build_log_row(state))
        state["audit_logged"] = True
    except Exception as e:
        logger.warning(f"Failed to write integration log: {e}")
        state["audit_logged"] = False

    return state
