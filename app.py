import os
import time
from typing import Dict, Any, Optional
from dotenv import load_dotenv

# Load environment variables before the connectors read them
load_dotenv()

from fastapi import FastAPI, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from langgraph.graph import StateGraph, START, END

# Import our modules
from dispatch.state import NotificationState
from dispatch.events import EventType, DeliveryStatus, normalize_payload, dedupe_key, event_type_of
from dispatch.nodes.capture import capture
from dispatch.nodes.settings import load_settings
from dispatch.nodes.gate import gate, gate_decision
from dispatch.nodes.resolve import resolve
from dispatch.nodes.render import render
from dispatch.nodes.deliver import deliver
from dispatch.nodes.audit import audit
from connectors.idempotency import Idem
from connectors.resend import resend_client, get_email_details
from connectors.supabase_store import store
from intake.auth import authenticate, CredentialError
from intake.validate import validate_lead_data
from intake.assign import auto_assign

VERSION = "1.0.0"

# Configure logging
logger.add(os.getenv("LOG_FILE", "logs/app.log"), rotation="1 day", retention="7 days", level="INFO")

DEFAULT_ALLOWED_ORIGINS = [
    "https://bullstarrealty.ae",
    "https://www.bullstarrealty.ae",
    "http://localhost:5173",
    "http://localhost:8080",
]
ALLOWED_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", ",".join(DEFAULT_ALLOWED_ORIGINS)).split(",")
    if origin.strip()
] or DEFAULT_ALLOWED_ORIGINS
ALLOW_HEADERS = (
    "authorization, x-client-info, apikey, content-type, x-supabase-api-version, "
    "x-supabase-client-platform, x-supabase-client-platform-version, "
    "x-supabase-client-runtime, x-supabase-client-runtime-version"
)
WEBHOOK_ALLOW_HEADERS = "authorization, x-client-info, apikey, content-type, x-api-key, x-webhook-token, api_key"

DEDUPE_ENABLED = os.getenv("NOTIFICATION_DEDUPE", "true").lower() not in ("0", "false", "no")
DEDUPE_TTL = int(os.getenv("NOTIFICATION_DEDUPE_TTL", "600"))
LEAD_DEDUPE_TTL = int(os.getenv("LEAD_DEDUPE_TTL", "3600"))

# Initialize FastAPI app
app = FastAPI(
    title="Lead Notification Dispatcher",
    description="Lead-lifecycle email/WhatsApp notifications and portal lead intake for the CRM",
    version=VERSION
)

# Build the LangGraph workflow
def build_workflow():
    """Build the notification dispatch workflow."""
    workflow = StateGraph(NotificationState)

    # Add nodes
    workflow.add_node("capture", capture)
    workflow.add_node("load_settings", load_settings)
    workflow.add_node("gate", gate)
    workflow.add_node("resolve", resolve)
    workflow.add_node("render", render)
    workflow.add_node("deliver", deliver)
    workflow.add_node("audit", audit)

    # Add edges
    workflow.add_edge(START, "capture")
    workflow.add_edge("capture", "load_settings")
    workflow.add_edge("load_settings", "gate")

    # Disabled event types stop here with a successful no-op
    workflow.add_conditional_edges(
        "gate",
        gate_decision,
        {
            "resolve": "resolve",
            "end": END
        }
    )

    workflow.add_edge("resolve", "render")
    workflow.add_edge("render", "deliver")
    workflow.add_edge("deliver", "audit")
    workflow.add_edge("audit", END)

    return workflow.compile()

# Initialize workflow and idempotency
app_graph = build_workflow()
notification_idem = Idem(namespace="notify")
lead_idem = Idem(namespace="lead")

def cors_headers(request: Request) -> Dict[str, str]:
    """CORS headers; unlisted origins get the default origin, which browsers reject."""
    if request.url.path.startswith("/webhooks/"):
        return {
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Headers": WEBHOOK_ALLOW_HEADERS,
        }

    origin = request.headers.get("origin", "")
    return {
        "Access-Control-Allow-Origin": origin if origin in ALLOWED_ORIGINS else ALLOWED_ORIGINS[0],
        "Access-Control-Allow-Headers": ALLOW_HEADERS,
        "Access-Control-Allow-Methods": "GET, POST, PUT, DELETE, OPTIONS",
        "Vary": "Origin",
    }

@app.middleware("http")
async def apply_cors_headers(request: Request, call_next):
    headers = cors_headers(request)
    if request.method == "OPTIONS":
        return Response(status_code=200, headers=headers)

    response = await call_next(request)
    response.headers.update(headers)
    return response

def client_ip(req: Request) -> Optional[str]:
    forwarded = req.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return req.headers.get("cf-connecting-ip")

def _email_ok(result: Optional[Dict[str, Any]]) -> bool:
    return bool(result) and not result.get("error")

def build_response(state: NotificationState) -> Dict[str, Any]:
    """Shape the final workflow state into the dispatcher's JSON reply."""
    if not state.get("enabled"):
        return {
            "success": True,
            "message": state.get("message", "Notifications disabled"),
            "recipients": [],
            "whatsapp_sent": 0
        }

    whatsapp_results = state.get("whatsapp_results", [])
    response = {
        "success": True,
        "message": state.get("message"),
        "recipients": state.get("recipients", []),
        "whatsapp_sent": len(whatsapp_results)
    }

    if event_type_of(state.get("event", {})) is EventType.MEETING_SCHEDULED:
        customer_whatsapp = state.get("customer_whatsapp_result") or {}
        response["customer_notified"] = {
            "email": _email_ok(state.get("customer_email_result")),
            "whatsapp": customer_whatsapp.get("status") == "sent"
        }

    if state.get("debug"):
        email_response = state.get("email_result") or {}
        email_id = (email_response.get("data") or {}).get("id")
        response["email_response"] = email_response
        response["email_details"] = get_email_details(email_id) if email_id else None
        response["whatsapp_results"] = whatsapp_results

    return response

def delivery_failed(state: NotificationState) -> bool:
    """True when any provider call rejected or errored."""
    for field in ("email_result", "customer_email_result"):
        if (state.get(field) or {}).get("error"):
            return True

    whatsapp_results = list(state.get("whatsapp_results") or [])
    if state.get("customer_whatsapp_result"):
        whatsapp_results.append(state["customer_whatsapp_result"])
    return any(r.get("status") in (DeliveryStatus.FAILED, DeliveryStatus.ERROR) for r in whatsapp_results)

def dispatch_notification(raw: Any, client_ip: Optional[str] = None, debug: bool = False) -> Dict[str, Any]:
    """Run one notification event through the workflow and return the reply body."""
    if not isinstance(raw, dict):
        raise ValueError("Notification payload must be a JSON object")

    # Check idempotency
    key = dedupe_key(normalize_payload(raw)) if DEDUPE_ENABLED else None
    if key and not notification_idem.check_and_set(key, ttl=DEDUPE_TTL):
        logger.warning(f"Duplicate notification ignored: {key}")
        return {
            "success": True,
            "message": "Duplicate notification ignored",
            "duplicate": True,
            "recipients": [],
            "whatsapp_sent": 0
        }

    try:
        result = app_graph.invoke({
            "raw": raw,
            "client_ip": client_ip,
            "debug": debug,
            "errors": []
        })
    except Exception:
        if key:
            notification_idem.clear_key(key)
        raise

    # Only a delivered event holds its key; gated or failed events may be re-sent
    if key and (not result.get("enabled") or delivery_failed(result)):
        notification_idem.clear_key(key)

    return build_response(result)

@app.post("/notifications/lead")
async def send_lead_notification(req: Request):
    """
    Dispatch a lead-lifecycle notification by email and WhatsApp.

    Expected payload (snake_case or camelCase field names):
    {
        "type": "meeting_scheduled",
        "lead_id": "...",
        "lead_name": "John",
        "lead_email": "john@example.com",
        "meetingTitle": "Site Visit",
        "meetingDate": "Jan 1, 2025 10:00 AM",
        "notifyCustomer": true
    }
    """
    start_time = time.time()

    try:
        payload = await req.json()
        debug = req.query_params.get("debug") == "1"

        result = dispatch_notification(payload, client_ip=client_ip(req), debug=debug)

        logger.info(f"Notification handled in {time.time() - start_time:.2f}s: {result.get('message')}")
        return JSONResponse(status_code=200, content=result)

    except Exception as e:
        logger.error(f"Error sending notification: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": str(e)}
        )

def _log_intake(credential, status: str, payload: Any, ip: Optional[str], **extra) -> None:
    row = {
        "integration_type": credential.integration_type,
        "integration_id": credential.integration_id,
        "source": credential.source,
        "status": status,
        "request_payload": payload,
        "ip_address": ip,
        **extra
    }
    try:
        store.insert_integration_log(row)
    except Exception as e:
        logger.warning(f"Failed to write intake log: {e}")

@app.post("/webhooks/lead")
@app.post("/webhooks/lead/{token}")
async def ingest_lead(req: Request, token: Optional[str] = None):
    """
    Lead intake for property portals and social platforms.

    Authenticate with an `x-api-key` header, an `x-webhook-token` header,
    or a token path segment. Expected payload:
    {
        "name": "Jane Doe",
        "email": "jane@example.com",
        "mobile": "+971 50 000 0000",
        "project_name": "Marina Heights",
        "source": "property_finder"
    }
    """
    try:
        api_key = req.headers.get("x-api-key") or req.headers.get("api_key")
        try:
            credential = authenticate(api_key, req.headers.get("x-webhook-token") or token)
        except CredentialError as e:
            return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.message})

        ip = client_ip(req)

        try:
            payload = await req.json()
        except ValueError:
            return JSONResponse(status_code=400, content={"success": False, "error": "Invalid JSON body"})

        lead, error = validate_lead_data(payload)
        if error:
            _log_intake(credential, "failed", payload, ip, error_message=error)
            return JSONResponse(status_code=400, content={"success": False, "error": error})

        if not lead_idem.check_and_set(f"{credential.source}:{lead['email']}", ttl=LEAD_DEDUPE_TTL):
            logger.warning(f"Duplicate lead ignored: {lead['email']} from {credential.source}")
            return JSONResponse(
                status_code=200,
                content={"success": True, "duplicate": True, "message": "Lead already received"}
            )

        try:
            created = store.insert_lead({
                **lead,
                "source": credential.source.replace("_", "-", 1),
                "status": "new"
            })
        except Exception as e:
            logger.error(f"Lead creation error: {e}")
            lead_idem.clear_key(f"{credential.source}:{lead['email']}")
            _log_intake(credential, "failed", payload, ip, error_message=str(e))
            return JSONResponse(status_code=500, content={"success": False, "error": "Failed to create lead"})

        lead_id = created["id"]
        _log_intake(credential, "success", payload, ip, response_payload={"lead_id": lead_id}, lead_id=lead_id)

        assigned_user_id = auto_assign(lead_id)
        profile = store.get_profile(assigned_user_id) if assigned_user_id else None

        # Send email + WhatsApp notification for the new lead
        try:
            dispatch_notification({
                "type": EventType.LEAD_CREATED.value,
                "lead_id": lead_id,
                "lead_name": created.get("full_name"),
                "lead_email": created.get("email"),
                "lead_phone": created.get("phone"),
                "lead_source": created.get("source"),
                "lead_interest": created.get("interest"),
                "assigned_to_email": (profile or {}).get("email"),
                "assigned_to_name": (profile or {}).get("full_name"),
                "send_whatsapp": True
            }, client_ip=ip)
        except Exception as e:
            logger.error(f"Failed to send new lead notification: {e}")

        return JSONResponse(
            status_code=201,
            content={"success": True, "message": "Lead created successfully", "lead_id": lead_id}
        )

    except Exception as e:
        logger.error(f"Webhook error: {e}")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "An error occurred processing your request"}
        )

@app.get("/health")
def health():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "timestamp": time.time(),
        "version": VERSION,
        "services": {
            "redis": "connected" if notification_idem.r else "disconnected",
            "supabase": "configured" if store.configured else "mock",
            "resend": "configured" if resend_client.api_key else "not_configured",
            "workflow": "ready"
        }
    }

if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Lead Notification Dispatcher")

    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8000")),
        reload=True,
        log_level="info"
    )
