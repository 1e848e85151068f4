import re
import httpx
import os
from typing import Dict, Any
from loguru import logger

from dispatch.events import DeliveryStatus

NON_DIGITS = re.compile(r"[^0-9]")

class WhatsAppSender:
    """WhatsApp Business API sender configured from the whatsapp_notifications setting."""

    def __init__(self):
        self.timeout = float(os.getenv("HTTP_TIMEOUT", "20"))

    def send_message(self, settings: Dict[str, Any], phone: str, message: str) -> Dict[str, Any]:
        """
        Send a text message to one phone number.

        Args:
            settings: whatsapp_notifications setting value (api_url / api_key)
            phone: Target number in any formatting
            message: Plain text body

        Returns:
            {"phone": ..., "status": DeliveryStatus value}
        """
        clean_phone = NON_DIGITS.sub("", phone or "")
        if not clean_phone:
            logger.warning(f"Invalid WhatsApp number skipped: {phone!r}")
            return {"phone": phone, "status": DeliveryStatus.INVALID_NUMBER.value}

        api_url = settings.get("api_url")
        api_key = settings.get("api_key")

        if not (api_url and api_key):
            # TODO: raise an operator alert once product decides whether this path is a placeholder or a failure
            logger.warning(f"WhatsApp API not configured. Would send to {clean_phone}: {message}")
            return {"phone": clean_phone, "status": DeliveryStatus.SKIPPED_NO_API.value}

        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    api_url,
                    headers={
                        "Authorization": f"Bearer {api_key}",
                        "Content-Type": "application/json"
                    },
                    json={
                        "messaging_product": "whatsapp",
                        "to": clean_phone,
                        "type": "text",
                        "text": {"body": message}
                    }
                )

            if response.is_success:
                logger.info(f"WhatsApp message sent to {clean_phone}")
                return {"phone": clean_phone, "status": DeliveryStatus.SENT.value}

            logger.error(f"WhatsApp send to {clean_phone} failed: HTTP {response.status_code}")
            return {"phone": clean_phone, "status": DeliveryStatus.FAILED.value}

        except httpx.HTTPError as e:
            logger.error(f"WhatsApp send failed for {phone}: {e}")
            return {"phone": phone, "status": DeliveryStatus.ERROR.value}

# Global WhatsApp sender instance
whatsapp_sender = WhatsAppSender()

def send_whatsapp_message(settings: Dict[str, Any], phone: str, message: str) -> Dict[str, Any]:
    """Send a WhatsApp message using the global sender."""
    return whatsapp_sender.send_message(settings, phone, message)
