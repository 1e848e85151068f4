import httpx
import os
from typing import Dict, Any, List, Optional
from loguru import logger

class ResendClient:
    """Transactional email delivery through the Resend REST API."""

    def __init__(self):
        self.api_key = os.getenv("RESEND_API_KEY")
        self.base_url = os.getenv("RESEND_API_URL", "https://api.resend.com").rstrip("/")
        self.timeout = float(os.getenv("HTTP_TIMEOUT", "20"))

        if not self.api_key:
            logger.warning("No Resend API key provided, email sends will be reported as errors")

    def _get_headers(self) -> Dict[str, str]:
        """Get headers for Resend API requests."""
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json"
        }

    def send_email(self, sender: str, to: List[str], subject: str, html: str) -> Dict[str, Any]:
        """
        Send one HTML email to a list of addresses.

        Args:
            sender: Display sender, e.g. "Name <address>"
            to: Recipient addresses
            subject: Subject line
            html: Rendered HTML body

        Returns:
            {"data": <provider response>, "error": None} on success, otherwise
            {"data": None, "error": {"name": ..., "message": ...}}
        """
        if not self.api_key:
            logger.warning(f"Resend not configured, email to {len(to)} recipient(s) not sent: {subject}")
            return self._error("missing_api_key", "RESEND_API_KEY is not configured")

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/emails",
                    headers=self._get_headers(),
                    json={
                        "from": sender,
                        "to": to,
                        "subject": subject,
                        "html": html
                    }
                )

            if response.is_success:
                data = response.json()
                logger.info(f"Email sent to {len(to)} recipient(s): {data.get('id')}")
                return {"data": data, "error": None}

            error = self._parse_error(response)
            logger.error(f"Resend rejected email ({response.status_code}): {error['message']}")
            return {"data": None, "error": error}

        except httpx.HTTPError as e:
            logger.error(f"Email send failed: {e}")
            return self._error("request_failed", str(e))

    def get_email(self, email_id: str) -> Optional[Dict[str, Any]]:
        """Fetch delivery details for a sent email (debug only)."""
        if not self.api_key or not email_id:
            return None

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.get(
                    f"{self.base_url}/emails/{email_id}",
                    headers=self._get_headers()
                )
            if response.is_success:
                return response.json()
            logger.warning(f"Could not fetch email details for {email_id}: {response.status_code}")
            return None
        except httpx.HTTPError as e:
            logger.warning(f"Could not fetch email details: {e}")
            return None

    def _parse_error(self, response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError:
            body = {}
        return {
            "name": body.get("name", "provider_error"),
            "message": body.get("message") or response.text or f"HTTP {response.status_code}",
            "status_code": response.status_code
        }

    @staticmethod
    def _error(name: str, message: str) -> Dict[str, Any]:
        return {"data": None, "error": {"name": name, "message": message}}

# Global Resend client instance
resend_client = ResendClient()

def send_email(sender: str, to: List[str], subject: str, html: str) -> Dict[str, Any]:
    """Send an email using the global Resend client."""
    return resend_client.send_email(sender, to, subject, html)

def get_email_details(email_id: str) -> Optional[Dict[str, Any]]:
    """Fetch email delivery details using the global Resend client."""
    return resend_client.get_email(email_id)
