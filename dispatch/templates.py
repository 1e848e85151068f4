"""
Email and WhatsApp copy for lead notifications.

Internal emails share one style block and lead-details card; the customer
meeting confirmation has its own copy and no CRM link. WhatsApp messages are
written per event type rather than derived from the HTML.
"""
import os
from html import escape
from typing import Dict, Any

from dispatch.events import EventType, event_type_of

CRM_URL = os.getenv("CRM_URL", "https://bullrealtyglobal.com/admin")
BRAND_NAME = os.getenv("BRAND_NAME", "Bull Star Realty")
SUPPORT_PHONE = os.getenv("SUPPORT_PHONE", "+971 545 304 304")
SUPPORT_EMAIL = os.getenv("SUPPORT_EMAIL", "support@bullstarrealty.ae")

BASE_STYLE = """
<style>
  body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background-color: #f4f4f4; margin: 0; padding: 20px; }
  .container { max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 12px; overflow: hidden; box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1); }
  .header { background: linear-gradient(135deg, #D4AF37 0%, #B8860B 100%); color: #000; padding: 30px; text-align: center; }
  .header h1 { margin: 0; font-size: 24px; font-weight: 600; }
  .content { padding: 30px; }
  .lead-info { background: #f8f9fa; border-radius: 8px; padding: 20px; margin: 20px 0; }
  .lead-info h3 { margin: 0 0 15px 0; color: #333; font-size: 16px; }
  .info-row { display: flex; padding: 8px 0; border-bottom: 1px solid #eee; }
  .info-label { font-weight: 600; color: #666; width: 120px; }
  .info-value { color: #333; }
  .status-badge { display: inline-block; padding: 6px 12px; border-radius: 20px; font-size: 12px; font-weight: 600; text-transform: uppercase; }
  .footer { background: #f8f9fa; padding: 20px; text-align: center; color: #666; font-size: 12px; }
  .cta-button { display: inline-block; background: #D4AF37; color: #000; padding: 12px 30px; border-radius: 6px; text-decoration: none; font-weight: 600; margin-top: 20px; }
</style>
"""

CUSTOMER_STYLE = """
<style>
  body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background-color: #f4f4f4; margin: 0; padding: 20px; }
  .container { max-width: 600px; margin: 0 auto; background: #ffffff; border-radius: 12px; overflow: hidden; box-shadow: 0 4px 6px rgba(0, 0, 0, 0.1); }
  .header { background: linear-gradient(135deg, #D4AF37 0%, #B8860B 100%); color: #000; padding: 30px; text-align: center; }
  .header h1 { margin: 0; font-size: 24px; font-weight: 600; }
  .content { padding: 30px; }
  .meeting-box { background: #f8f9fa; border-radius: 8px; padding: 20px; margin: 20px 0; border-left: 4px solid #D4AF37; }
  .info-row { padding: 8px 0; border-bottom: 1px solid #eee; }
  .info-label { font-weight: 600; color: #666; }
  .info-value { color: #333; }
  .footer { background: #f8f9fa; padding: 20px; text-align: center; color: #666; font-size: 12px; }
</style>
"""


def _text(value: Any, default: str = "") -> str:
    return escape(str(value)) if value not in (None, "") else escape(default)


def _label(value: Any) -> str:
    """Human form of a snake_case status, e.g. site_visit -> SITE VISIT."""
    return str(value or "").replace("_", " ").upper()


def _row(label: str, value: Any) -> str:
    return f'<div class="info-row"><span class="info-label">{label}:</span><span class="info-value">{_text(value)}</span></div>'


def _lead_info_block(event: Dict[str, Any]) -> str:
    rows = [_row("Name", event.get("lead_name")), _row("Email", event.get("lead_email"))]
    for field, label in (("lead_phone", "Phone"), ("lead_source", "Source"), ("lead_interest", "Interest")):
        if event.get(field):
            rows.append(_row(label, event[field]))
    return f'<div class="lead-info"><h3>📋 Lead Details</h3>{"".join(rows)}</div>'


def _internal_page(heading: str, body: str, event: Dict[str, Any], tab: str = "leads", cta: str = "View in CRM →") -> str:
    return (
        f"<!DOCTYPE html><html><head>{BASE_STYLE}</head><body>"
        f'<div class="container">'
        f'<div class="header"><h1>{heading}</h1></div>'
        f'<div class="content">{body}{_lead_info_block(event)}'
        f'<p style="text-align: center;"><a href="{CRM_URL}?tab={tab}" class="cta-button">{cta}</a></p>'
        f"</div>"
        f'<div class="footer"><p>{escape(BRAND_NAME)} CRM • Lead Management System</p></div>'
        f"</div></body></html>"
    )


def render_email(event: Dict[str, Any]) -> Dict[str, str]:
    """Internal team email for an event: {"subject", "html"}."""
    name = _text(event.get("lead_name"))
    raw_name = event.get("lead_name") or ""
    event_type = event_type_of(event)

    if event_type is EventType.LEAD_CREATED:
        body = f"<p>A new lead has been captured from <strong>{_text(event.get('lead_source'), 'Website')}</strong>.</p>"
        if event.get("assigned_to_name"):
            body += f"<p>📌 <strong>Assigned to:</strong> {_text(event['assigned_to_name'])}</p>"
        return {
            "subject": f"🎯 New Lead Captured: {raw_name}",
            "html": _internal_page("🎯 New Lead Captured!", body, event),
        }

    if event_type is EventType.LEAD_ASSIGNED:
        body = (
            f"<p>Hi <strong>{_text(event.get('assigned_to_name'), 'Team Member')}</strong>,</p>"
            "<p>A new lead has been assigned to you. Please follow up at your earliest convenience.</p>"
        )
        return {
            "subject": f"📌 Lead Assigned to You: {raw_name}",
            "html": _internal_page("📌 Lead Assigned to You", body, event, cta="View Lead Details →"),
        }

    if event_type is EventType.STATUS_CHANGED:
        old_status = _text(_label(event.get("old_status")))
        new_status = _text(_label(event.get("new_status")))
        body = (
            f"<p>The status for lead <strong>{name}</strong> has been changed.</p>"
            '<div style="text-align: center; margin: 20px 0;">'
            f'<span class="status-badge" style="background: #e0e0e0; color: #616161;">{old_status}</span>'
            '<span style="margin: 0 15px; font-size: 20px;">→</span>'
            f'<span class="status-badge">{new_status}</span>'
            "</div>"
        )
        return {
            "subject": f"🔄 Lead Status Updated: {raw_name} → {_label(event.get('new_status'))}",
            "html": _internal_page("🔄 Lead Status Updated", body, event),
        }

    if event_type is EventType.NOTE_ADDED:
        body = (
            f"<p>A new note has been added to lead <strong>{name}</strong>.</p>"
            '<div class="lead-info"><h3>Note Content</h3>'
            f'<p style="color: #333; line-height: 1.6;">{_text(event.get("note_content"))}</p></div>'
        )
        return {
            "subject": f"📝 Note Added: {raw_name}",
            "html": _internal_page("📝 Note Added to Lead", body, event),
        }

    if event_type is EventType.FOLLOWUP_SCHEDULED:
        body = (
            f"<p>A follow-up has been scheduled for lead <strong>{name}</strong>.</p>"
            '<div class="lead-info"><h3>📅 Follow-up Details</h3>'
            f'{_row("Title", event.get("followup_title"))}{_row("Date", event.get("followup_date"))}</div>'
        )
        return {
            "subject": f"⏰ Follow-up Scheduled: {raw_name}",
            "html": _internal_page("⏰ Follow-up Scheduled", body, event, tab="calendar"),
        }

    if event_type is EventType.FOLLOWUP_COMPLETED:
        body = (
            f"<p>A follow-up has been marked as completed for lead <strong>{name}</strong>.</p>"
            '<div class="lead-info"><h3>Completed Task</h3>'
            f'<p style="color: #2e7d32; font-weight: 600;">{_text(event.get("followup_title"))}</p></div>'
        )
        return {
            "subject": f"✅ Follow-up Completed: {raw_name}",
            "html": _internal_page("✅ Follow-up Completed", body, event),
        }

    if event_type is EventType.MEETING_SCHEDULED:
        meeting_type = (event.get("meeting_type") or "in_person").replace("_", " ")
        body = (
            f"<p>A meeting has been scheduled regarding lead <strong>{name}</strong>.</p>"
            '<div class="lead-info"><h3>📋 Meeting Details</h3>'
            f'{_row("Title", event.get("meeting_title"))}'
            f'{_row("Date/Time", event.get("meeting_date"))}'
            f'{_row("Location", event.get("meeting_location") or "To be confirmed")}'
            f'{_row("Type", meeting_type)}</div>'
        )
        return {
            "subject": f"📅 Meeting Scheduled: {event.get('meeting_title') or raw_name}",
            "html": _internal_page("📅 Meeting Scheduled", body, event),
        }

    return {
        "subject": f"Lead Activity: {raw_name}",
        "html": f"<p>Activity recorded for lead {name}</p>",
    }


def render_customer_meeting_email(event: Dict[str, Any]) -> Dict[str, str]:
    """Meeting confirmation addressed to the lead; no internal CRM link."""
    brand = escape(BRAND_NAME)
    tel = "".join(ch for ch in SUPPORT_PHONE if ch.isdigit() or ch == "+")
    html = (
        f"<!DOCTYPE html><html><head>{CUSTOMER_STYLE}</head><body>"
        '<div class="container">'
        '<div class="header"><h1>📅 Meeting Confirmation</h1></div>'
        '<div class="content">'
        f"<p>Dear <strong>{_text(event.get('lead_name'))}</strong>,</p>"
        f"<p>We are pleased to confirm your upcoming meeting with {brand}.</p>"
        '<div class="meeting-box"><h3 style="margin: 0 0 15px 0;">Meeting Details</h3>'
        f'<div class="info-row"><span class="info-label">📋 Subject:</span> <span class="info-value">{_text(event.get("meeting_title"))}</span></div>'
        f'<div class="info-row"><span class="info-label">🕐 Date &amp; Time:</span> <span class="info-value">{_text(event.get("meeting_date"))}</span></div>'
        f'<div class="info-row"><span class="info-label">📍 Location:</span> <span class="info-value">{_text(event.get("meeting_location"), "To be confirmed")}</span></div>'
        "</div>"
        f'<p>If you need to reschedule, please contact us at <a href="tel:{tel}">{escape(SUPPORT_PHONE)}</a> or reply to this email.</p>'
        "<p>We look forward to meeting you!</p>"
        f"<p>Best regards,<br><strong>{brand} Team</strong></p>"
        "</div>"
        '<div class="footer">'
        f"<p>{brand} • Premium Real Estate Services</p>"
        f"<p>📞 {escape(SUPPORT_PHONE)} | ✉️ {escape(SUPPORT_EMAIL)}</p>"
        "</div></div></body></html>"
    )
    return {"subject": f"Meeting Confirmation - {BRAND_NAME}", "html": html}


def render_whatsapp(event: Dict[str, Any]) -> str:
    """Condensed team message for WhatsApp."""
    lead_info = f"*{event.get('lead_name') or ''}*\n📧 {event.get('lead_email') or ''}"
    if event.get("lead_phone"):
        lead_info += f"\n📞 {event['lead_phone']}"
    if event.get("lead_source"):
        lead_info += f"\n📍 Source: {event['lead_source']}"

    event_type = event_type_of(event)

    if event_type is EventType.LEAD_CREATED:
        assigned = f"👤 Assigned to: {event['assigned_to_name']}" if event.get("assigned_to_name") else ""
        return f"🎯 *New Lead Captured!*\n\n{lead_info}\n\n{assigned}".rstrip()
    if event_type is EventType.LEAD_ASSIGNED:
        return f"📌 *Lead Assigned*\n\n{lead_info}\n\n👤 Assigned to: {event.get('assigned_to_name') or 'Team Member'}"
    if event_type is EventType.STATUS_CHANGED:
        return f"🔄 *Lead Status Updated*\n\n{lead_info}\n\n{_label(event.get('old_status'))} → {_label(event.get('new_status'))}"
    if event_type is EventType.MEETING_SCHEDULED:
        return (
            f"📅 *Meeting Scheduled*\n\n{lead_info}\n\n"
            f"📋 {event.get('meeting_title') or ''}\n🕐 {event.get('meeting_date') or ''}\n"
            f"📍 {event.get('meeting_location') or 'TBD'}"
        )
    if event_type is EventType.FOLLOWUP_SCHEDULED:
        return (
            f"⏰ *Follow-up Scheduled*\n\n{lead_info}\n\n"
            f"📋 {event.get('followup_title') or ''}\n🕐 {event.get('followup_date') or ''}"
        )
    return f"📢 *Lead Activity*\n\n{lead_info}"


def render_customer_whatsapp(event: Dict[str, Any]) -> str:
    return (
        f"📅 *Meeting Confirmation - {BRAND_NAME}*\n\n"
        f"Dear {event.get('lead_name') or ''},\n\n"
        "Your meeting has been scheduled:\n\n"
        f"📋 {event.get('meeting_title') or ''}\n"
        f"🕐 {event.get('meeting_date') or ''}\n"
        f"📍 {event.get('meeting_location') or 'To be confirmed'}\n\n"
        f"For any changes, contact us at {SUPPORT_PHONE}.\n\n"
        f"Best regards,\n{BRAND_NAME} Team"
    )
