import pytest
import os
import sys
import uuid
import httpx
from unittest.mock import patch, MagicMock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from connectors.whatsapp import WhatsAppSender
from connectors.resend import ResendClient
from connectors.idempotency import Idem

CONFIGURED = {"enabled": True, "api_url": "https://graph.example.com/messages", "api_key": "secret"}

def mock_http_client(mock_client_cls, status_code=200, json_body=None):
    response = MagicMock()
    response.status_code = status_code
    response.is_success = 200 <= status_code < 300
    response.json.return_value = json_body or {}
    response.text = ""
    client = mock_client_cls.return_value.__enter__.return_value
    client.post.return_value = response
    client.get.return_value = response
    return client

class TestWhatsAppSender:
    """Test per-phone WhatsApp delivery statuses."""

    def setup_method(self):
        self.sender = WhatsAppSender()

    @pytest.mark.parametrize("phone", ["n/a", "", "+ ( ) -"])
    def test_invalid_number_makes_no_call(self, phone):
        with patch("connectors.whatsapp.httpx.Client") as mock_client_cls:
            result = self.sender.send_message(CONFIGURED, phone, "hi")

        assert result == {"phone": phone, "status": "invalid_number"}
        mock_client_cls.assert_not_called()

    def test_skipped_without_api(self):
        with patch("connectors.whatsapp.httpx.Client") as mock_client_cls:
            result = self.sender.send_message({"enabled": True}, "+971 50 123", "hi")

        assert result == {"phone": "97150123", "status": "skipped_no_api"}
        mock_client_cls.assert_not_called()

    def test_sent(self):
        with patch("connectors.whatsapp.httpx.Client") as mock_client_cls:
            client = mock_http_client(mock_client_cls, 200)
            result = self.sender.send_message(CONFIGURED, "+971 (50) 123", "hello")

        assert result == {"phone": "97150123", "status": "sent"}
        url = client.post.call_args[0][0]
        kwargs = client.post.call_args[1]
        assert url == CONFIGURED["api_url"]
        assert kwargs["headers"]["Authorization"] == "Bearer secret"
        assert kwargs["json"] == {
            "messaging_product": "whatsapp",
            "to": "97150123",
            "type": "text",
            "text": {"body": "hello"}
        }

    def test_failed_on_non_ok_status(self):
        with patch("connectors.whatsapp.httpx.Client") as mock_client_cls:
            mock_http_client(mock_client_cls, 401)
            result = self.sender.send_message(CONFIGURED, "97150", "hello")

        assert result["status"] == "failed"

    def test_error_on_transport_failure(self):
        with patch("connectors.whatsapp.httpx.Client") as mock_client_cls:
            client = mock_client_cls.return_value.__enter__.return_value
            client.post.side_effect = httpx.ConnectError("unreachable")
            result = self.sender.send_message(CONFIGURED, "+97150", "hello")

        assert result == {"phone": "+97150", "status": "error"}

class TestResendClient:
    """Test the Resend email client."""

    def test_missing_api_key(self):
        with patch.dict(os.environ, {}, clear=True):
            client = ResendClient()
        result = client.send_email("CRM <a@x.com>", ["b@x.com"], "Hi", "<p>Hi</p>")

        assert result["data"] is None
        assert result["error"]["name"] == "missing_api_key"

    def test_send_success(self):
        with patch.dict(os.environ, {"RESEND_API_KEY": "re_test"}):
            client = ResendClient()

        with patch("connectors.resend.httpx.Client") as mock_client_cls:
            http = mock_http_client(mock_client_cls, 200, {"id": "email_123"})
            result = client.send_email("CRM <a@x.com>", ["b@x.com"], "Hi", "<p>Hi</p>")

        assert result == {"data": {"id": "email_123"}, "error": None}
        assert http.post.call_args[0][0] == "https://api.resend.com/emails"
        assert http.post.call_args[1]["json"]["to"] == ["b@x.com"]

    def test_provider_error(self):
        with patch.dict(os.environ, {"RESEND_API_KEY": "re_test"}):
            client = ResendClient()

        with patch("connectors.resend.httpx.Client") as mock_client_cls:
            mock_http_client(mock_client_cls, 422, {"name": "validation_error", "message": "Invalid `from` field"})
            result = client.send_email("bad", ["b@x.com"], "Hi", "<p>Hi</p>")

        assert result["data"] is None
        assert result["error"]["name"] == "validation_error"
        assert result["error"]["status_code"] == 422

class TestIdempotency:
    """Test duplicate suppression."""

    def setup_method(self):
        self.idem = Idem(redis_url="redis://127.0.0.1:1")

    def test_check_and_set(self):
        key = f"test_{uuid.uuid4().hex}"
        assert self.idem.check_and_set(key) is True
        assert self.idem.check_and_set(key) is False

    def test_different_keys(self):
        assert self.idem.check_and_set(f"a_{uuid.uuid4().hex}") is True
        assert self.idem.check_and_set(f"b_{uuid.uuid4().hex}") is True

    def test_empty_key(self):
        assert self.idem.check_and_set("") is False

    def test_expired_key_is_reusable(self):
        key = f"ttl_{uuid.uuid4().hex}"
        with patch("connectors.idempotency.time.time", return_value=1000.0):
            assert self.idem.check_and_set(key, ttl=10) is True
        with patch("connectors.idempotency.time.time", return_value=1011.0):
            assert self.idem.check_and_set(key, ttl=10) is True

    def test_expired_keys_are_dropped(self):
        with patch("connectors.idempotency.time.time", return_value=1000.0):
            self.idem.check_and_set("old", ttl=10)
        with patch("connectors.idempotency.time.time", return_value=1011.0):
            self.idem.check_and_set("new", ttl=10)

        assert "old" not in self.idem._memory_keys
        assert "new" in self.idem._memory_keys

    def test_clear_key(self):
        key = f"clear_{uuid.uuid4().hex}"
        self.idem.check_and_set(key)
        self.idem.clear_key(key)
        assert self.idem.check_and_set(key) is True
