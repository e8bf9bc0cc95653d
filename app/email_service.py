import logging
import os
import smtplib
from email.message import EmailMessage
from typing import Optional

logger = logging.getLogger("app.email")


def _get_smtp_config() -> dict:
    smtp_user = os.getenv("SMTP_USER", "").strip()
    smtp_from = os.getenv("SMTP_FROM", "").strip() or smtp_user
    if smtp_user and smtp_from and "@" not in smtp_from:
        smtp_from = f"{smtp_from} <{smtp_user}>"
    return {
        "host": os.getenv("SMTP_HOST", "smtp.gmail.com").strip(),
        "port": int(os.getenv("SMTP_PORT", "465") or "465"),
        "user": smtp_user,
        "pass": os.getenv("SMTP_PASS", "").replace(" ", "").strip(),
        "from": smtp_from,
    }


def smtp_enabled() -> bool:
    config = _get_smtp_config()
    return bool(config["user"] and config["pass"] and config["from"])


def send_email(to_email: str, subject: str, body: str) -> bool:
    config = _get_smtp_config()
    if not smtp_enabled() or not to_email:
        logger.warning("SMTP not configured; email '%s' not sent", subject)
        return False

    msg = EmailMessage()
    msg["From"] = config["from"]
    msg["To"] = to_email
    msg["Subject"] = subject
    msg.set_content(body)

    try:
        with smtplib.SMTP_SSL(config["host"], config["port"]) as server:
            server.login(config["user"], config["pass"])
            server.send_message(msg)
        return True
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("SMTP send failed: %s", exc)
        return False


def send_password_reset_code(to_email: str, name: Optional[str], code: str, valid_minutes: int) -> bool:
    subject = "Your password reset code"
    body = (
        f"Hello {name or 'there'},\n\n"
        "We received a request to reset the password for your Finance Tracker account.\n\n"
        f"Reset code: {code}\n\n"
        f"The code expires in {valid_minutes} minutes. "
        "If you did not ask for a reset, you can ignore this email.\n\n"
        "Regards,\nFinance Tracker"
    )
    return send_email(to_email, subject, body)
