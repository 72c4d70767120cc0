"""
ApplyTrack - Email Service

Supports two delivery methods:
    1. Resend HTTP API (recommended for cloud platforms)
    2. SMTP via aiosmtplib (for local dev or self-hosted with Gmail, SES, etc.)

Resend is checked first. If APPLYTRACK_RESEND_API_KEY is not set, falls back to SMTP.
Gracefully degrades: if neither is configured, logs a warning and returns False.
"""
import html
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, List, Optional

import aiosmtplib
import httpx

from ..config import settings

logger = logging.getLogger("applytrack.email")

BRAND_COLOR = "#2563eb"


def _esc(value) -> str:
    return html.escape(str(value)) if value is not None else ""


def _layout(title: str, body: str, button_url: Optional[str] = None,
            button_label: Optional[str] = None, footer: Optional[str] = None) -> str:
    """Wrap an email body in the shared layout."""
    button = ""
    if button_url and button_label:
        button = f"""
            <p style="text-align: center; margin: 32px 0;">
                <a href="{_esc(button_url)}"
                   style="background: {BRAND_COLOR}; color: white; padding: 12px 24px;
                          border-radius: 8px; text-decoration: none; font-weight: 600;
                          display: inline-block;">
                    {_esc(button_label)}
                </a>
            </p>"""
    footer_html = ""
    if footer:
        footer_html = f"""
            <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 24px 0;">
            <p style="color: #9ca3af; font-size: 12px;">{footer}</p>"""
    return f"""
        <div style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
                     max-width: 520px; margin: 0 auto; padding: 24px;">
            <h2 style="color: {BRAND_COLOR}; margin-bottom: 16px;">{_esc(title)}</h2>
            {body}{button}{footer_html}
        </div>
        """


PREFERENCES_FOOTER = "You can change which reminders you receive in your ApplyTrack settings."


class EmailService:
    """Async email service with Resend HTTP API and SMTP fallback."""

    RESEND_API_URL = "https://api.resend.com/emails"

    def is_configured(self) -> bool:
        """Check if any email backend is configured."""
        return bool(
            settings.email.resend_api_key
            or (settings.email.smtp_host and settings.email.smtp_username)
        )

    def _use_resend(self) -> bool:
        return bool(settings.email.resend_api_key)

    def _sender(self) -> str:
        return f"{settings.email.from_name} <{settings.email.from_email}>"

    async def _send_via_resend(self, to_email: str, subject: str, html_body: str,
                               text_body: Optional[str] = None) -> bool:
        """Send email via Resend HTTP API."""
        payload = {
            "from": self._sender(),
            "to": [to_email],
            "subject": subject,
            "html": html_body,
        }
        if text_body:
            payload["text"] = text_body
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.RESEND_API_URL,
                    headers={
                        "Authorization": f"Bearer {settings.email.resend_api_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                    timeout=10.0,
                )

            if response.status_code in (200, 201):
                logger.info("Email sent via Resend to %s: %s", to_email, subject)
                return True
            logger.error("Resend API error (%s): %s", response.status_code, response.text)
            return False
        except httpx.HTTPError as e:
            logger.error("Failed to send email via Resend to %s: %s", to_email, e)
            return False

    async def _send_via_smtp(self, to_email: str, subject: str, html_body: str,
                             text_body: Optional[str] = None) -> bool:
        """Send email via SMTP."""
        message = MIMEMultipart("alternative")
        message["From"] = self._sender()
        message["To"] = to_email
        message["Subject"] = subject

        if text_body:
            message.attach(MIMEText(text_body, "plain"))
        message.attach(MIMEText(html_body, "html"))

        try:
            await aiosmtplib.send(
                message,
                hostname=settings.email.smtp_host,
                port=settings.email.smtp_port,
                username=settings.email.smtp_username,
                password=settings.email.smtp_password,
                start_tls=settings.email.smtp_use_tls,
            )
            logger.info("Email sent via SMTP to %s: %s", to_email, subject)
            return True
        except (aiosmtplib.SMTPException, OSError) as e:
            logger.error("Failed to send email via SMTP to %s: %s", to_email, e)
            return False

    async def send_email(self, to_email: str, subject: str, html_body: str,
                         text_body: Optional[str] = None) -> bool:
        """Send an email. Uses Resend if configured, otherwise SMTP."""
        if not self.is_configured():
            logger.warning("Email not configured, skipping send to %s", to_email)
            return False

        if self._use_resend():
            return await self._send_via_resend(to_email, subject, html_body, text_body)
        return await self._send_via_smtp(to_email, subject, html_body, text_body)

    # --- Reminders ---

    async def send_interview_reminder(self, to_email: str, interview, hours: int,
                                      user_name: str = "") -> bool:
        greeting = f"Hi {_esc(user_name)}," if user_name else "Hi,"
        when = interview.scheduled_at.strftime("%A, %B %d at %I:%M %p UTC")
        window = "tomorrow" if hours >= 24 else f"in {hours} hour{'s' if hours != 1 else ''}"
        details = [f"<li><strong>When:</strong> {_esc(when)}</li>",
                   f"<li><strong>Type:</strong> {_esc(interview.interview_type.replace('_', ' '))}</li>"]
        if interview.location:
            details.append(f"<li><strong>Where:</strong> {_esc(interview.location)}</li>")
        if interview.meeting_link:
            details.append(f"<li><strong>Link:</strong> <a href=\"{_esc(interview.meeting_link)}\">"
                           f"{_esc(interview.meeting_link)}</a></li>")

        pending = [t for t in interview.preparation_tasks or [] if not t.get("completed")]
        prep = ""
        if pending:
            items = "".join(f"<li>{_esc(t.get('title'))}</li>" for t in pending[:5])
            prep = f"<p>Preparation still open:</p><ul>{items}</ul>"

        body = f"""
            <p>{greeting}</p>
            <p>Your interview for <strong>{_esc(interview.title)}</strong> at
               <strong>{_esc(interview.company)}</strong> is {window}.</p>
            <ul>{''.join(details)}</ul>
            {prep}"""
        html_body = _layout("Interview reminder", body,
                            f"{settings.base_url}/interviews/{interview.id}", "View interview",
                            PREFERENCES_FOOTER)
        return await self.send_email(
            to_email, f"Reminder: {interview.company} interview {window}", html_body)

    async def send_deadline_reminder(self, to_email: str, job, days_left: int,
                                     user_name: str = "") -> bool:
        greeting = f"Hi {_esc(user_name)}," if user_name else "Hi,"
        if days_left <= 0:
            when = "today"
        elif days_left == 1:
            when = "tomorrow"
        else:
            when = f"in {days_left} days"
        body = f"""
            <p>{greeting}</p>
            <p>The application deadline for <strong>{_esc(job.title)}</strong> at
               <strong>{_esc(job.company)}</strong> is {when} ({job.deadline.isoformat()}).</p>"""
        html_body = _layout("Application deadline approaching", body,
                            f"{settings.base_url}/jobs/{job.id}", "Open application",
                            PREFERENCES_FOOTER)
        return await self.send_email(to_email, f"Deadline {when}: {job.title} at {job.company}", html_body)

    async def send_follow_up_reminder(self, to_email: str, job, follow_up: Dict,
                                      user_name: str = "") -> bool:
        greeting = f"Hi {_esc(user_name)}," if user_name else "Hi,"
        tips = "".join(f"<li>{_esc(t)}</li>" for t in follow_up.get("tips", []))
        body = f"""
            <p>{greeting}</p>
            <p><strong>{_esc(job.title)}</strong> at <strong>{_esc(job.company)}</strong>:
               {_esc(follow_up['description'])}</p>
            <ul>{tips}</ul>"""
        html_body = _layout(follow_up["title"], body,
                            f"{settings.base_url}/jobs/{job.id}", "Open application",
                            PREFERENCES_FOOTER)
        return await self.send_email(to_email, f"{follow_up['title']}: {job.company}", html_body)

    async def send_stalled_digest(self, to_email: str, jobs: List, stalled_days: int,
                                  user_name: str = "") -> bool:
        greeting = f"Hi {_esc(user_name)}," if user_name else "Hi,"
        rows = "".join(
            f"<li><strong>{_esc(j.title)}</strong> at {_esc(j.company)} "
            f"({_esc(j.status.replace('_', ' '))})</li>"
            for j in jobs
        )
        body = f"""
            <p>{greeting}</p>
            <p>{len(jobs)} application{'s have' if len(jobs) != 1 else ' has'} not moved in
               {stalled_days}+ days. A follow-up or status update may help:</p>
            <ul>{rows}</ul>"""
        html_body = _layout("Applications needing attention", body,
                            f"{settings.base_url}/jobs?stale=true", "Review applications",
                            PREFERENCES_FOOTER)
        return await self.send_email(to_email, f"{len(jobs)} stalled application(s)", html_body)

    # --- Invitations ---

    async def send_team_invitation(self, to_email: str, team_name: str, inviter_name: str,
                                   role: str, token: str) -> bool:
        accept_url = f"{settings.base_url}/teams/invitations/accept?token={token}"
        body = f"""
            <p>Hi,</p>
            <p>{_esc(inviter_name)} invited you to join <strong>{_esc(team_name)}</strong>
               on ApplyTrack as a <strong>{_esc(role)}</strong>.</p>"""
        html_body = _layout("You're invited to a team", body, accept_url, "Accept invitation",
                            "This invitation expires in 7 days.")
        return await self.send_email(to_email, f"Join {team_name} on ApplyTrack", html_body)

    async def send_mentor_invitation(self, to_email: str, mentee_name: str, relationship_type: str,
                                     message: Optional[str], token: str) -> bool:
        accept_url = f"{settings.base_url}/mentors/invitations?token={token}"
        note = f"<blockquote style=\"color: #374151;\">{_esc(message)}</blockquote>" if message else ""
        body = f"""
            <p>Hi,</p>
            <p>{_esc(mentee_name)} would like you to be their
               <strong>{_esc(relationship_type.replace('_', ' '))}</strong> on ApplyTrack.</p>
            {note}"""
        html_body = _layout("Mentorship invitation", body, accept_url, "Respond to invitation",
                            "This invitation expires in 7 days.")
        return await self.send_email(to_email, f"{mentee_name} invited you to mentor them", html_body)


# Global instance
email_service = EmailService()
