from __future__ import annotations

from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import make_msgid
import html
import logging
import smtplib

logger = logging.getLogger(__name__)


@dataclass
class SendResult:
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class EmailContent:
    subject: str
    text: str
    html: str


def custom_notification(player_name: str, subject: str, message: str, tournament_name: str = "") -> EmailContent:
    """Admin broadcast to players, optionally scoped to a tournament."""
    about = f" regarding {tournament_name}" if tournament_name else ""
    text = (
        f"Hi {player_name},\n\n"
        f"You have a new message from the EpicEsports team{about}:\n\n"
        f"{message}\n\n"
        "Need help? Contact support@epicesports.tech\n\n"
        "EpicEsports Team"
    )
    body = html.escape(message).replace("\n", "<br>")
    html_body = (
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">'
        "<h1>EpicEsports</h1>"
        f"<h2>Hi {html.escape(player_name)}!</h2>"
        + (f"<p><strong>Tournament:</strong> {html.escape(tournament_name)}</p>" if tournament_name else "")
        + f"<p>{body}</p>"
        '<p>Need help? Contact <a href="mailto:support@epicesports.tech">support@epicesports.tech</a></p>'
        "<p>EpicEsports Team</p>"
        "</div>"
    )
    return EmailContent(subject=subject, text=text, html=html_body)


@dataclass
class Mailer:
    host: str | None = None
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    timeout: float = 10.0
    from_email: str = "noreply@epicesports.tech"

    @classmethod
    def from_settings(cls, settings) -> "Mailer":
        return cls(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            use_tls=settings.SMTP_USE_TLS,
            timeout=settings.SMTP_TIMEOUT_SECONDS,
            from_email=settings.FROM_EMAIL,
        )

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send(self, to: str, content: EmailContent) -> SendResult:
        if not self.configured:
            logger.warning("SMTP host not configured - email sending disabled (%s)", content.subject)
            return SendResult(success=False, error="Email service not configured")

        message = EmailMessage()
        message["Subject"] = content.subject
        message["From"] = self.from_email
        message["To"] = to
        message["Message-ID"] = make_msgid(domain="epicesports.tech")
        message.set_content(content.text)
        message.add_alternative(content.html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.warning("Failed to send email '%s' to %s: %s", content.subject, to, exc)
            return SendResult(success=False, error=str(exc))

        logger.info("Email sent to %s", to)
        return SendResult(success=True, message_id=message.get("Message-ID"))
