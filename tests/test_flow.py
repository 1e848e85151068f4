import pytest
import os
import sys
from unittest.mock import patch

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dispatch.nodes.capture import capture
from dispatch.nodes.settings import load_settings, index_settings
from dispatch.nodes.gate import gate, is_event_enabled
from dispatch.nodes.resolve import resolve_recipients, team_emails, HARDCODED_ADMIN_EMAILS, LEGACY_ADMIN_EMAILS
from dispatch.nodes.audit import audit, build_log_row
from app import app_graph

SENT_EMAIL = {"data": {"id": "email_123"}, "error": None}

def settings_rows(email=None, recipients=None, whatsapp=None):
    rows = []
    if email is not None:
        rows.append({"setting_key": "email_notifications", "setting_value": email, "is_active": True})
    if recipients is not None:
        rows.append({"setting_key": "notification_recipients", "setting_value": recipients, "is_active": True})
    if whatsapp is not None:
        rows.append({"setting_key": "whatsapp_notifications", "setting_value": whatsapp, "is_active": True})
    return rows

class TestNodes:
    """Test the individual dispatch nodes."""

    def test_capture_node(self):
        result = capture({"raw": {"type": "meeting_scheduled", "leadName": "John", "debug": True}})

        assert result["event"]["lead_name"] == "John"
        assert result["debug"] is True
        assert result["errors"] == []

    def test_capture_rejects_non_object(self):
        with pytest.raises(ValueError):
            capture({"raw": ["not", "an", "object"]})

    def test_index_settings_skips_inactive_rows(self):
        rows = [
            {"setting_key": "email_notifications", "setting_value": {"enabled": False}, "is_active": False},
            {"setting_key": "notification_recipients", "setting_value": '{"admin_emails": ["a@x.com"]}'},
        ]
        settings = index_settings(rows)

        assert "email_notifications" not in settings
        assert settings["notification_recipients"] == {"admin_emails": ["a@x.com"]}

    def test_load_settings_defaults_when_store_empty(self):
        with patch("dispatch.nodes.settings.fetch_notification_settings", return_value=[]):
            result = load_settings({})

        assert result["email_settings"] == {}
        assert result["recipient_settings"] == {}
        assert result["whatsapp_settings"] == {}

    @pytest.mark.parametrize("event_type, toggle", [
        ("lead_created", "notify_on_new_lead"),
        ("lead_assigned", "notify_on_assignment"),
        ("status_changed", "notify_on_status_change"),
        ("note_added", "notify_on_note_added"),
        ("followup_scheduled", "notify_on_followup"),
        ("followup_completed", "notify_on_followup"),
    ])
    def test_toggle_disables_event(self, event_type, toggle):
        enabled, message = is_event_enabled({"type": event_type}, {}, {toggle: False})
        assert enabled is False
        assert message == f"Notifications for {event_type} disabled"

    def test_defaults(self):
        assert is_event_enabled({"type": "lead_created"}, {}, {})[0] is True
        assert is_event_enabled({"type": "note_added"}, {}, {})[0] is False

    def test_meetings_bypass_toggles(self):
        enabled, _ = is_event_enabled({"type": "meeting_scheduled"}, {"enabled": False}, {"notify_on_followup": False})
        assert enabled is True

    def test_global_email_switch(self):
        enabled, message = is_event_enabled({"type": "lead_created"}, {"enabled": False}, {})
        assert enabled is False
        assert message == "Email notifications disabled"

    def test_unknown_type_is_disabled(self):
        assert is_event_enabled({"type": "lead_deleted"}, {}, {})[0] is False

    def test_gate_node_clears_recipients(self):
        result = gate({"event": {"type": "note_added"}})
        assert result["enabled"] is False
        assert result["recipients"] == []

class TestRecipients:
    """Test recipient resolution."""

    def test_lead_created_recipients(self):
        emails = team_emails(
            {"type": "lead_created", "assigned_to_email": "agent@x.com"},
            {"admin_emails": ["ops@x.com"]},
            []
        )
        assert emails == HARDCODED_ADMIN_EMAILS + ["ops@x.com", "agent@x.com"]

    def test_legacy_admins_never_included(self):
        legacy = sorted(LEGACY_ADMIN_EMAILS)
        emails = team_emails(
            {"type": "meeting_scheduled", "assigned_to_email": legacy[0]},
            {"admin_emails": legacy, "manager_emails": [legacy[1].upper()]},
            legacy
        )
        assert not set(e.lower() for e in emails) & LEGACY_ADMIN_EMAILS

    def test_recipients_deduplicated(self):
        emails = team_emails(
            {"type": "lead_assigned", "assigned_to_email": " Support@BullStarRealty.ae "},
            {"admin_emails": [HARDCODED_ADMIN_EMAILS[0], "", "  "]},
            []
        )
        assert emails == HARDCODED_ADMIN_EMAILS

    def test_managers_only_for_meetings(self):
        settings = {"manager_emails": ["lead.manager@x.com"]}
        status = team_emails({"type": "status_changed"}, settings, ["mgr@x.com"])
        meeting = team_emails({"type": "meeting_scheduled"}, settings, ["mgr@x.com"])

        assert "mgr@x.com" not in status
        assert "mgr@x.com" in meeting
        assert "lead.manager@x.com" in meeting

    def test_whatsapp_targets(self):
        whatsapp = {"enabled": True, "admin_phones": ["+971 1", "+971 1"], "team_phones": ["+971 2"]}

        lead_plan = resolve_recipients({"type": "lead_created"}, {}, whatsapp, [])
        meeting_plan = resolve_recipients({"type": "meeting_scheduled"}, {}, whatsapp, [])
        muted_plan = resolve_recipients({"type": "lead_created", "send_whatsapp": False}, {}, whatsapp, [])

        assert [r["address"] for r in lead_plan if r["channel"] == "whatsapp"] == ["+971 1"]
        assert [r["address"] for r in meeting_plan if r["channel"] == "whatsapp"] == ["+971 1", "+971 2"]
        assert not [r for r in muted_plan if r["channel"] == "whatsapp"]

    def test_customer_channels(self):
        event = {"type": "meeting_scheduled", "lead_email": "john@x.com", "lead_phone": "+971 3"}

        plan = resolve_recipients(event, {}, {"enabled": True}, [])
        opted_out = resolve_recipients({**event, "notify_customer": False}, {}, {"enabled": True}, [])
        no_whatsapp = resolve_recipients(event, {}, {}, [])

        customer = [(r["channel"], r["address"]) for r in plan if r["audience"] == "customer"]
        assert customer == [("email", "john@x.com"), ("whatsapp", "+971 3")]
        assert not [r for r in opted_out if r["audience"] == "customer"]
        assert [r["channel"] for r in no_whatsapp if r["audience"] == "customer"] == ["email"]

class TestAudit:
    """Test the integration log write."""

    def setup_method(self):
        self.state = {
            "event": {"type": "lead_created", "lead_id": "lead-1"},
            "client_ip": "10.0.0.1",
            "email_result": {"data": None, "error": {"name": "validation_error", "message": "bad from"}},
            "whatsapp_results": [{"phone": "9711", "status": "skipped_no_api"}],
            "customer_email_result": None,
            "customer_whatsapp_result": None
        }

    def test_log_row(self):
        row = build_log_row(self.state)

        assert row["integration_type"] == "resend_email"
        assert row["status"] == "error"
        assert row["lead_id"] == "lead-1"
        assert row["ip_address"] == "10.0.0.1"
        assert row["error_message"] == "bad from"
        assert row["response_payload"]["whatsapp"] == self.state["whatsapp_results"]
        assert len(row["integration_id"]) == 36

    def test_log_failure_is_swallowed(self):
        with patch("dispatch.nodes.audit.insert_integration_log", side_effect=Exception("db down")):
            result = audit(self.state)
        assert result["audit_logged"] is False

class TestWorkflow:
    """Test the complete dispatch workflow with connectors mocked."""

    def run(self, payload, rows=None, managers=None):
        with patch("dispatch.nodes.settings.fetch_notification_settings", return_value=rows or []), \
             patch("dispatch.nodes.resolve.fetch_manager_emails", return_value=managers or []) as mock_managers, \
             patch("dispatch.nodes.deliver.send_email", return_value=SENT_EMAIL) as mock_email, \
             patch("dispatch.nodes.deliver.send_whatsapp_message",
                   side_effect=lambda s, phone, m: {"phone": phone, "status": "sent"}) as mock_whatsapp, \
             patch("dispatch.nodes.audit.insert_integration_log") as mock_log:
            state = app_graph.invoke({"raw": payload, "errors": []})
        return state, mock_email, mock_whatsapp, mock_log, mock_managers

    def test_lead_created(self):
        state, mock_email, mock_whatsapp, mock_log, mock_managers = self.run(
            {"type": "lead_created", "lead_id": "lead-1", "lead_name": "Jane Doe",
             "lead_email": "jane@x.com", "lead_source": "facebook"},
            rows=settings_rows(recipients={"admin_emails": ["ops@x.com", "admin.dubai@bullstarrealty.ae"]})
        )

        assert state["recipients"] == HARDCODED_ADMIN_EMAILS + ["ops@x.com"]
        assert state["message"] == "Notification sent to 4 recipient(s)"
        mock_email.assert_called_once()
        sender, to, subject, _ = mock_email.call_args[0]
        assert sender == "Bull Star Realty CRM <notifications@bullstarrealty.ae>"
        assert to == state["recipients"]
        assert subject == "🎯 New Lead Captured: Jane Doe"
        mock_whatsapp.assert_not_called()
        mock_managers.assert_not_called()
        mock_log.assert_called_once()

    def test_disabled_event_sends_nothing(self):
        state, mock_email, mock_whatsapp, mock_log, _ = self.run(
            {"type": "status_changed", "lead_id": "lead-1"},
            rows=settings_rows(recipients={"notify_on_status_change": False},
                               whatsapp={"enabled": True, "admin_phones": ["+9711"]})
        )

        assert state["enabled"] is False
        assert state["recipients"] == []
        mock_email.assert_not_called()
        mock_whatsapp.assert_not_called()
        mock_log.assert_not_called()

    def test_meeting_sends_team_and_customer(self):
        state, mock_email, mock_whatsapp, _, mock_managers = self.run(
            {"type": "meeting_scheduled", "leadName": "John", "leadEmail": "john@x.com",
             "leadPhone": "+971 55 000", "meetingTitle": "Site Visit",
             "meetingDate": "Jan 1, 2025 10:00 AM", "notifyCustomer": True},
            rows=settings_rows(
                email={"enabled": False, "from_email": "crm@x.com", "from_name": "CRM"},
                whatsapp={"enabled": True, "admin_phones": ["+9711"], "team_phones": ["+9712"]}
            ),
            managers=["manager@x.com"]
        )

        assert "manager@x.com" in state["recipients"]
        assert mock_email.call_count == 2
        team_call, customer_call = mock_email.call_args_list
        assert team_call[0][0] == "CRM <crm@x.com>"
        assert customer_call[0][1] == ["john@x.com"]
        assert customer_call[0][2].startswith("Meeting Confirmation")
        assert state["customer_email_result"] == SENT_EMAIL
        assert state["customer_whatsapp_result"]["status"] == "sent"
        assert [r["phone"] for r in state["whatsapp_results"]] == ["+9711", "+9712"]
        assert mock_whatsapp.call_count == 3
        mock_managers.assert_called_once()

    def test_email_failure_does_not_stop_whatsapp(self):
        with patch("dispatch.nodes.settings.fetch_notification_settings",
                   return_value=settings_rows(whatsapp={"enabled": True, "admin_phones": ["+9711"]})), \
             patch("dispatch.nodes.deliver.send_email", side_effect=Exception("provider down")), \
             patch("dispatch.nodes.deliver.send_whatsapp_message",
                   return_value={"phone": "9711", "status": "sent"}) as mock_whatsapp, \
             patch("dispatch.nodes.audit.insert_integration_log") as mock_log:
            state = app_graph.invoke({"raw": {"type": "lead_assigned", "lead_id": "lead-2"}, "errors": []})

        assert state["email_result"]["error"]["message"] == "provider down"
        mock_whatsapp.assert_called_once()
        row = mock_log.call_args[0][0]
        assert row["status"] == "error"
        assert row["error_message"] == "provider down"

if __name__ == "__main__":
    # Run tests
    pytest.main([__file__, "-v"])
