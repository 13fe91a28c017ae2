"""
Email Service

Delivers invitation emails over SMTP. When no SMTP host is configured the
message is logged and dropped. smtplib blocks, so delivery runs in a worker
thread.
"""

import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import Optional

from app.config import Settings, get_settings

logger = logging.getLogger(__name__)


class Mailer:
    """SMTP mail dispatcher."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    async def send(self, to: str, subject: str, html: str, text: str) -> bool:
        """
        Send a multipart (text + html) email.

        Returns False when SMTP is not configured. SMTP failures propagate
        to the caller, which dispatches mail best-effort.
        """
        if not self.settings.has_smtp:
            logger.info(f"SMTP not configured - skipping email to {to}: {subject}")
            return False

        message = MIMEMultipart("alternative")
        message["From"] = self.settings.email_from
        message["To"] = to
        message["Subject"] = subject
        message.attach(MIMEText(text, "plain"))
        message.attach(MIMEText(html, "html"))

        await asyncio.to_thread(self._deliver, message)
        logger.info(f"Email sent to {to}: {subject}")
        return True

    def _deliver(self, message: MIMEMultipart) -> None:
        with smtplib.SMTP(self.settings.smtp_host, self.settings.smtp_port, timeout=30) as server:
            if self.settings.smtp_use_tls:
                server.starttls()
            if self.settings.smtp_username and self.settings.smtp_password:
                server.login(self.settings.smtp_username, self.settings.smtp_password)
            server.send_message(message)

    async def send_invitation(
        self,
        to: str,
        house_name: str,
        inviter_name: str,
        role: str,
        invite_link: str,
    ) -> bool:
        subject = f"{inviter_name} invited you to join {house_name} on HomeManager"

        text = (
            f"Hello!\n\n"
            f"{inviter_name} has invited you to join \"{house_name}\" on HomeManager "
            f"as a {role}.\n\n"
            f"Accept the invitation: {invite_link}\n\n"
            f"This invitation expires in {self.settings.invitation_ttl_days} days. "
            f"If you were not expecting it, you can ignore this email.\n"
        )

        link = escape(invite_link, quote=True)
        html = f"""<!DOCTYPE html>
<html>
  <body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto;">
    <h1 style="color: #6366f1;">HomeManager Invitation</h1>
    <p>Hello!</p>
    <p><strong>{escape(inviter_name)}</strong> has invited you to join
       <strong>{escape(house_name)}</strong> as a <strong>{escape(role)}</strong>.</p>
    <p style="text-align: center; margin: 30px 0;">
      <a href="{link}" style="padding: 14px 32px; background-color: #6366f1; color: #fff;
         text-decoration: none; border-radius: 6px;">Accept Invitation</a>
    </p>
    <p>Or copy this link into your browser:<br><a href="{link}">{link}</a></p>
    <p style="color: #666; font-size: 14px;">This invitation expires in
       {self.settings.invitation_ttl_days} days.</p>
  </body>
</html>
"""
        return await self.send(to, subject, html, text)
