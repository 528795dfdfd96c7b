"""
Email Notification Service

Sends the admin "new app pending review" email. Uses SendGrid when an API key
is configured, and logs the email to the console otherwise (development).
"""

import html
from dataclasses import dataclass
from typing import Optional, List

from config import settings
from utils.logger import logger


@dataclass
class Email:
    """Complete email data"""
    to: List[str]
    subject: str
    html_content: str
    from_email: str = settings.EMAIL_FROM
    from_name: str = settings.EMAIL_FROM_NAME


class EmailTemplates:
    """HTML email templates"""

    @staticmethod
    def app_pending_review(
        app_id: str,
        app_name: str,
        developer_name: str,
        version: str,
        category: str,
    ) -> str:
        e = html.escape
        return f"""
      <h2>New app submitted for review</h2>
      <p><strong>App:</strong> {e(app_name)}</p>
      <p><strong>Developer:</strong> {e(developer_name)}</p>
      <p><strong>Version:</strong> {e(version)}</p>
      <p><strong>Category:</strong> {e(category)}</p>
      <p><strong>App ID:</strong> {e(app_id)}</p>
      <p>Please review and approve in Supabase.</p>
"""


class EmailService:
    """
    Email notification service.

    Uses SendGrid in production, console logging in development.
    """

    def __init__(
        self,
        sendgrid_api_key: Optional[str] = None,
        admin_email: Optional[str] = None,
    ):
        self.sendgrid_api_key = sendgrid_api_key or settings.SENDGRID_API_KEY
        self.admin_email = admin_email or settings.ADMIN_EMAIL
        self.templates = EmailTemplates()

        if not self.sendgrid_api_key:
            logger.warning("SendGrid API key not configured, emails will be logged only")

    async def send(self, email: Email) -> bool:
        """
        Send an email.

        Returns:
            True if sent (or logged) successfully
        """
        if self.sendgrid_api_key:
            return self._send_sendgrid(email)
        return self._send_console(email)

    def _send_sendgrid(self, email: Email) -> bool:
        """Send email via SendGrid. Errors propagate to the caller."""
        from sendgrid import SendGridAPIClient
        from sendgrid.helpers.mail import Mail, Email as SGEmail, To, Content

        message = Mail()
        message.from_email = SGEmail(email.from_email, email.from_name)
        for recipient in email.to:
            message.add_to(To(recipient))
        message.subject = email.subject
        message.add_content(Content("text/html", email.html_content))

        response = SendGridAPIClient(self.sendgrid_api_key).send(message)

        if response.status_code in (200, 201, 202):
            logger.info(f"Email sent to {email.to}: {email.subject}")
            return True

        logger.error(f"SendGrid error: {response.status_code}")
        return False

    def _send_console(self, email: Email) -> bool:
        """Log email to console (development mode)"""
        logger.info(f"[EMAIL] To: {', '.join(email.to)}")
        logger.info(f"[EMAIL] Subject: {email.subject}")
        logger.debug(f"[EMAIL] Content preview: {email.html_content[:200]}...")
        return True

    async def send_app_pending_review(
        self,
        app_id: str,
        app_name: str,
        developer_name: str,
        version: str,
        category: str,
    ) -> bool:
        """Tell the reviewer channel a new app is waiting"""
        email = Email(
            to=[self.admin_email],
            subject=f"[Anti-Matter] New app pending review: {app_name}",
            html_content=self.templates.app_pending_review(
                app_id, app_name, developer_name, version, category
            ),
        )
        return await self.send(email)


# Singleton instance
_email_service: Optional[EmailService] = None


def get_email_service() -> EmailService:
    """Get or create the email service singleton"""
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
