import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from app.config.settings import settings
from app.utils.logger import log

_TEMPORARY_PASSWORD_HTML = """
<h2>Your Face Auth account</h2>
<p>Use the temporary password below to sign in at <a href="{login_url}">{login_url}</a>.</p>
<p style="font-size:20px;font-weight:bold">{password}</p>
<p>After signing in you will complete your profile and register your face
for two-factor authentication.</p>
<p>If you did not expect this message, contact support.</p>
"""


class EmailNotifier:
    """Fire-and-forget delivery of one-time temporary passwords over SMTP.

    Delivery failures are logged and never raised to the caller.
    """

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        username: str | None = None,
        password: str | None = None,
        sender: str | None = None,
        use_tls: bool | None = None,
    ):
        self.host = host if host is not None else settings.SMTP_HOST
        self.port = port or settings.SMTP_PORT
        self.username = username if username is not None else settings.SMTP_USER
        self.password = password if password is not None else settings.SMTP_PASSWORD
        self.sender = sender or settings.SMTP_FROM
        self.use_tls = settings.SMTP_USE_TLS if use_tls is None else use_tls

    @property
    def configured(self) -> bool:
        return bool(self.host)

    def send_temporary_password(self, to: str, temporary_password: str) -> bool:
        body = _TEMPORARY_PASSWORD_HTML.format(
            login_url=f"{settings.FRONTEND_URL}/login", password=temporary_password
        )
        return self.send(to, "Your temporary password", body)

    def send(self, to: str, subject: str, body_html: str) -> bool:
        if not self.configured:
            log.warn(f"SMTP not configured, skipping delivery of '{subject}' to {to}")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = to
        msg.attach(MIMEText(body_html, "html"))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                if self.use_tls:
                    server.starttls()
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            log.err(f"Failed to send '{subject}' to {to}: {type(e).__name__}: {e}")
            return False

        log.info(f"Email '{subject}' sent to {to}")
        return True
