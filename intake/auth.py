from datetime import datetime, timezone
from typing import Any, Optional
from dataclasses import dataclass
from loguru import logger

from connectors.supabase_store import store

@dataclass
class IntegrationCredential:
    integration_id: Optional[str]
    integration_type: str            # "api_key" | "webhook"
    source: str

class CredentialError(Exception):
    """Rejected intake credential, carrying the HTTP status to answer with."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

def _parse_timestamp(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)

def authenticate(api_key: Optional[str], token: Optional[str]) -> IntegrationCredential:
    """
    Resolve an API key (preferred) or webhook token to its integration source.

    Raises:
        CredentialError: 401 for missing/unknown credentials, 403 for inactive or expired ones
    """
    if not api_key and not token:
        raise CredentialError(401, "Authentication required. Provide x-api-key or x-webhook-token header")

    now = datetime.now(timezone.utc)

    if api_key:
        key = store.find_api_key(api_key)
        if not key:
            raise CredentialError(401, "Invalid API key")
        if not key.get("is_active"):
            raise CredentialError(403, "API key is inactive")
        expires_at = _parse_timestamp(key.get("expires_at"))
        if expires_at and expires_at < now:
            raise CredentialError(403, "API key has expired")

        store.touch_api_key(key["id"], (key.get("request_count") or 0) + 1, now.isoformat())
        logger.info(f"Lead intake authenticated with API key for source {key.get('source')}")
        return IntegrationCredential(key["id"], "api_key", key.get("source") or "custom")

    webhook = store.find_webhook(token)
    if not webhook:
        raise CredentialError(401, "Invalid webhook token")
    if not webhook.get("is_active"):
        raise CredentialError(403, "Webhook is inactive")

    store.touch_webhook(webhook["id"], (webhook.get("trigger_count") or 0) + 1, now.isoformat())
    logger.info(f"Lead intake authenticated with webhook for source {webhook.get('source')}")
    return IntegrationCredential(webhook["id"], "webhook", webhook.get("source") or "custom")
