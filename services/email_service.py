import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from urllib.parse import urlencode
from core.config import settings
from utils.logger import get_logger

# Setup logger
logger = get_logger(__name__)


def build_login_link(raw_token: str) -> str:
    return f"{settings.APP_BASE_URL.rstrip('/')}/auth/login-link/verify?{urlencode({'token': raw_token})}"


def login_link_email_body(link: str, ttl_minutes: int) -> str:
    return f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <h2>Your sign-in link</h2>
        <p><a href="{link}">Sign in</a></p>
        <p>This link expires in {ttl_minutes} minutes and works only once.</p>
        <p>If you didn't request this, please ignore this email.</p>
    </body>
    </html>
    """


def send_email(to_email: str, subject: str, body: str):
    # Skip email sending in test environment
    if settings.ENV == "testing":
        logger.info(
            "[TEST MODE] Email skipped",
            extra={"recipient": to_email, "subject": subject}
        )
        return

    if not settings.MAIL_SERVER:
        logger.warning(
            "MAIL_SERVER not configured; email not sent",
            extra={"recipient": to_email, "subject": subject}
        )
        return

    logger.debug(
        "Attempting to send email",
        extra={"recipient": to_email, "subject": subject}
    )

    message = MIMEMultipart("alternative")
    message["Subject"] = subject
    message["From"] = settings.MAIL_FROM
    message["To"] = to_email
    message.attach(MIMEText(body, "html"))

    try:
        with smtplib.SMTP(settings.MAIL_SERVER, settings.MAIL_PORT) as server:
            server.starttls()
            if settings.MAIL_USERNAME:
                server.login(settings.MAIL_USERNAME, settings.MAIL_PASSWORD)
            server.sendmail(settings.MAIL_FROM, to_email, message.as_string())

        logger.info(
            "Email sent successfully",
            extra={"recipient": to_email, "subject": subject}
        )

    except smtplib.SMTPException as e:
        # Body carries the login link; never log it
        logger.error(
            f"Failed to send email: {type(e).__name__}",
            extra={
                "recipient": to_email,
                "subject": subject,
                "error_type": type(e).__name__
            },
            exc_info=True
        )
        raise
