import os
import uuid
from typing import Dict, Any, List, Optional, Iterable
from loguru import logger
from supabase import create_client, Client

class SupabaseStore:
    """Access to the CRM tables hosted on Supabase (service-role client)."""

    def __init__(self):
        self.url = os.getenv("SUPABASE_URL")
        self.service_key = os.getenv("SUPABASE_SERVICE_ROLE_KEY")
        self.client: Optional[Client] = None

        if self.url and self.service_key:
            try:
                self.client = create_client(self.url, self.service_key)
                logger.info("Supabase client initialised")
            except Exception as e:
                logger.error(f"Supabase client initialisation failed: {e}")
                self.client = None
        else:
            logger.warning("No Supabase credentials provided, using mock mode")

    # --- notification dispatch -------------------------------------------

    def fetch_notification_settings(self, keys: Iterable[str]) -> List[Dict[str, Any]]:
        """Return notification_settings rows for the given setting keys ([] on failure)."""
        if not self.client:
            return []

        try:
            response = (
                self.client.table("notification_settings")
                .select("setting_key, setting_value, is_active")
                .in_("setting_key", list(keys))
                .execute()
            )
            return response.data or []
        except Exception as e:
            logger.warning(f"Could not load notification settings, using defaults: {e}")
            return []

    def fetch_manager_emails(self) -> List[str]:
        """Return profile emails of every user holding the manager role."""
        if not self.client:
            return []

        try:
            roles = (
                self.client.table("user_roles")
                .select("user_id")
                .eq("role", "manager")
                .execute()
            )
            user_ids = [row["user_id"] for row in roles.data or []]
            if not user_ids:
                return []

            profiles = (
                self.client.table("profiles")
                .select("email")
                .in_("user_id", user_ids)
                .execute()
            )
            return [row["email"] for row in profiles.data or [] if row.get("email")]
        except Exception as e:
            logger.warning(f"Could not load manager emails: {e}")
            return []

    def insert_integration_log(self, row: Dict[str, Any]) -> None:
        """Insert one integration_logs row. Raises on failure."""
        if not self.client:
            logger.info(f"Mock mode: would log {row.get('integration_type')} for lead {row.get('lead_id')}")
            return
        self.client.table("integration_logs").insert(row).execute()

    # --- lead intake -----------------------------------------------------

    def find_api_key(self, api_key: str) -> Optional[Dict[str, Any]]:
        if not self.client:
            return None
        response = (
            self.client.table("api_keys")
            .select("id, source, is_active, expires_at, request_count")
            .eq("api_key", api_key)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def touch_api_key(self, key_id: str, request_count: int, used_at: str) -> None:
        if not self.client:
            return
        self.client.table("api_keys").update({
            "last_used_at": used_at,
            "request_count": request_count
        }).eq("id", key_id).execute()

    def find_webhook(self, token: str) -> Optional[Dict[str, Any]]:
        if not self.client:
            return None
        response = (
            self.client.table("webhooks")
            .select("id, source, is_active, trigger_count")
            .eq("webhook_token", token)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    def touch_webhook(self, webhook_id: str, trigger_count: int, triggered_at: str) -> None:
        if not self.client:
            return
        self.client.table("webhooks").update({
            "last_triggered_at": triggered_at,
            "trigger_count": trigger_count
        }).eq("id", webhook_id).execute()

    def insert_lead(self, lead: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a lead and return the stored row."""
        if not self.client:
            logger.info("Mock mode: would insert lead")
            return {**lead, "id": str(uuid.uuid4())}
        response = self.client.table("leads").insert(lead).execute()
        return response.data[0]

    def list_sales_members(self) -> List[Dict[str, Any]]:
        """Users eligible for auto-assignment (user / telesales roles)."""
        if not self.client:
            return []
        response = (
            self.client.table("user_roles")
            .select("user_id, role")
            .in_("role", ["user", "telesales"])
            .execute()
        )
        return response.data or []

    def list_assignee_user_ids(self) -> List[str]:
        if not self.client:
            return []
        response = self.client.table("lead_assignees").select("user_id").execute()
        return [row["user_id"] for row in response.data or []]

    def assign_lead(self, lead_id: str, user_id: str, role: str, assigned_at: str) -> None:
        if not self.client:
            return
        self.client.table("lead_assignees").insert({
            "lead_id": lead_id,
            "user_id": user_id,
            "role": role
        }).execute()
        self.client.table("leads").update({
            "assigned_to": user_id,
            "assigned_at": assigned_at
        }).eq("id", lead_id).execute()

    def get_profile(self, user_id: str) -> Optional[Dict[str, Any]]:
        if not self.client:
            return None
        response = (
            self.client.table("profiles")
            .select("email, full_name")
            .eq("user_id", user_id)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None

    @property
    def configured(self) -> bool:
        return self.client is not None

# Global store instance
store = SupabaseStore()

def fetch_notification_settings(keys: Iterable[str]) -> List[Dict[str, Any]]:
    """Load notification settings rows using the global store."""
    return store.fetch_notification_settings(keys)

def fetch_manager_emails() -> List[str]:
    """Load manager emails using the global store."""
    return store.fetch_manager_emails()

def insert_integration_log(row: Dict[str, Any]) -> None:
    """Write an integration log row using the global store."""
    store.insert_integration_log(row)
