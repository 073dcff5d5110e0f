from celery import shared_task
from celery.exceptions import SoftTimeLimitExceeded
from config import settings
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
import logging

logger = logging.getLogger(__name__)


def deliver_email(sender_email: str, sender_password: str, receiver_email: str, subject: str, body: str,
                  server: str, port: int = 465, timeout: float = 15):
    """
    Sends one email using the SMTP protocol over SSL.

    Args:
        sender_email (str): The email address of the sender.
        sender_password (str): The password of the sender's email.
        receiver_email (str): The address of the single receiver.
        subject (str): The subject of the email.
        body (str): The body of the email.
        server (str): The SMTP server address.
        port (int): The port number of the SMTP server.
        timeout (float): Socket timeout for the whole SMTP conversation.

    Raises:
        smtplib.SMTPException, OSError: when the server refuses or is unreachable.
    """
    msg = MIMEMultipart()
    msg['From'] = sender_email
    msg['To'] = receiver_email
    msg['Subject'] = subject
    msg.attach(MIMEText(body, 'plain'))

    with smtplib.SMTP_SSL(server, port, timeout=timeout) as smtp:
        if sender_password:
            smtp.login(sender_email, sender_password)
        smtp.sendmail(from_addr=sender_email, to_addrs=[receiver_email], msg=msg.as_string())
    logger.info(f"Email sent to {receiver_email}.")


@shared_task(name="core.celery.alert_tasks.send_alert_email", soft_time_limit=settings.MAIL_TIMEOUT_SECONDS)
def send_alert_email(receiver_email: str, subject: str, body: str):
    """
    Queued variant of `deliver_email`, one task per recipient.

    Failures are logged and reported in the result, never retried.
    """
    try:
        deliver_email(settings.SMTP_EMAIL, settings.SMTP_PASSWORD, receiver_email, subject, body,
                      settings.SMTP_SERVER, settings.SMTP_PORT, timeout=settings.MAIL_TIMEOUT_SECONDS)
        return {"status": "Email sent successfully", "to": receiver_email}

    except SoftTimeLimitExceeded:
        logger.error(f"Email to {receiver_email} timed out.")
        return {"status": "timeout", "to": receiver_email}

    except (smtplib.SMTPException, OSError) as e:
        logger.exception(e)
        return {"status": "failed", "to": receiver_email, "error": str(e)}
