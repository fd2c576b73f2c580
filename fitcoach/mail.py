"""Outbound SMTP email for invitations and password recovery."""
import logging
import os
import re
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

logger = logging.getLogger("fitcoach")

SMTP_HOST = os.getenv("SMTP_HOST", "")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", "")
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", "")
SMTP_FROM_EMAIL = os.getenv("SMTP_FROM_EMAIL", SMTP_USER)
SMTP_FROM_NAME = os.getenv("SMTP_FROM_NAME", "FitCoach")


def is_configured() -> bool:
    return bool(SMTP_HOST and SMTP_USER and SMTP_PASSWORD)


def send_email(to_email: str, subject: str, html_body: str) -> bool:
    if not is_configured():
        logger.warning(f"SMTP not configured, email to {to_email} not sent: {subject}")
        return False

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{SMTP_FROM_NAME} <{SMTP_FROM_EMAIL}>"
    msg["To"] = to_email

    text_body = re.sub(r"<[^>]+>", "", html_body.replace("<br>", "\n").replace("</p>", "\n"))
    msg.attach(MIMEText(text_body, "plain"))
    msg.attach(MIMEText(html_body, "html"))

    try:
        context = ssl.create_default_context()
        with smtplib.SMTP(SMTP_HOST, SMTP_PORT) as server:
            server.starttls(context=context)
            server.login(SMTP_USER, SMTP_PASSWORD)
            server.sendmail(SMTP_FROM_EMAIL, to_email, msg.as_string())
    except (smtplib.SMTPException, OSError) as e:
        logger.error(f"Failed to send email to {to_email}: {e}")
        return False

    logger.info(f"Email sent to {to_email}: {subject}")
    return True


def send_password_reset_email(to_email: str, reset_url: str) -> bool:
    html = (
        "<p>We received a request to reset your FitCoach password.</p>"
        f"<p><a href=\"{reset_url}\">Choose a new password</a></p>"
        "<p>The link expires in one hour. If you didn't ask for this you can ignore this email.</p>"
    )
    return send_email(to_email, "Reset your FitCoach password", html)


def send_invite_email(to_email: str, name: str, trainer_name: str, reset_url: str) -> bool:
    html = (
        f"<p>Hi {name},</p>"
        f"<p>{trainer_name or 'Your trainer'} invited you to FitCoach.</p>"
        f"<p><a href=\"{reset_url}\">Set your password</a> to get started.</p>"
    )
    return send_email(to_email, "You're invited to FitCoach", html)
