from typing import TypedDict, Optional, List, Dict, Any

class Recipient(TypedDict):
    channel: str                     # "email" | "whatsapp"
    audience: str                    # "team" | "customer"
    address: str

class NotificationState(TypedDict, total=False):
    """State shape for the notification dispatch workflow."""
    raw: Dict[str, Any]              # inbound request body
    event: Dict[str, Any]            # canonical snake_case event
    client_ip: Optional[str]
    debug: bool
    email_settings: Dict[str, Any]
    recipient_settings: Dict[str, Any]
    whatsapp_settings: Dict[str, Any]
    enabled: bool
    message: str
    plan: List[Recipient]
    recipients: List[str]            # team email addresses
    email: Dict[str, str]            # subject / html
    customer_email: Dict[str, str]
    whatsapp_message: str
    customer_whatsapp_message: str
    email_result: Dict[str, Any]
    customer_email_result: Optional[Dict[str, Any]]
    customer_whatsapp_result: Optional[Dict[str, Any]]
    whatsapp_results: List[Dict[str, Any]]
    audit_logged: bool
    errors: List[str]
