import logging

import requests
from flask import current_app
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from settlement.errors import CodeDeliveryError

logger = logging.getLogger(__name__)


class CodeSender:
    """Sends a one-time code to a phone number or email address."""
    channel = None

    def send(self, destination, code):
        raise NotImplementedError


class LogCodeSender(CodeSender):
    """Development sender: nothing leaves the process."""
    channel = "log"

    def send(self, destination, code):
        logger.info("One-time code for %s issued (log sender)", destination)
        logger.debug("Code for %s: %s", destination, code)


class SmsCodeSender(CodeSender):
    channel = "sms"

    def __init__(self, api_url, api_key, api_secret, sender, timeout=15):
        self.api_url = api_url
        self.api_key = api_key
        self.api_secret = api_secret
        self.sender = sender
        self.timeout = timeout

    def send(self, destination, code):
        if not self.api_key or not self.api_secret:
            raise CodeDeliveryError("SMS gateway is not configured.")

        payload = {
            "msisdn": format_phone_number(destination),
            "message": f"Your withdrawal code is {code}. Do not share it with anyone.",
            "sender": self.sender,
        }

        try:
            response = requests.post(
                self.api_url,
                json=payload,
                auth=(self.api_key, self.api_secret),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise CodeDeliveryError(f"SMS gateway unreachable: {e}") from e

        if response.status_code not in (200, 201, 202):
            logger.error("SMS gateway failed. Status=%s Body=%s", response.status_code, response.text[:500])
            raise CodeDeliveryError(f"SMS gateway rejected message (status {response.status_code}).")


class EmailCodeSender(CodeSender):
    channel = "email"

    def __init__(self, api_key, from_email):
        self.api_key = api_key
        self.from_email = from_email

    def send(self, destination, code):
        if not self.api_key:
            raise CodeDeliveryError("SENDGRID_API_KEY is missing. Set it in .env or environment variables.")
        if not self.from_email:
            raise CodeDeliveryError("MAIL_DEFAULT_SENDER is missing. Set it in .env")

        message = Mail(
            from_email=self.from_email,
            to_emails=destination,
            subject="Your withdrawal confirmation code",
            html_content=f"""
            <p>Your withdrawal confirmation code is:</p>
            <h2>{code}</h2>
            <p>This code expires in a few minutes. If you did not request a withdrawal, ignore this email.</p>
            """
        )

        try:
            resp = SendGridAPIClient(api_key=self.api_key).send(message)
        except Exception as e:
            # SendGrid exceptions carry .body/.status_code with the real error
            body = getattr(e, "body", None)
            status = getattr(e, "status_code", None)
            logger.exception("SendGrid error: status=%s body=%s error=%s", status, body, e)
            raise CodeDeliveryError("Failed to send confirmation code email.") from e

        # SendGrid typically returns 202 on success
        if resp.status_code not in (200, 202):
            logger.error("SendGrid failed. Status=%s Body=%s", resp.status_code, resp.body)
            raise CodeDeliveryError(f"SendGrid rejected email. status={resp.status_code}")


def format_phone_number(phone):
    """0812345678 -> 66812345678"""
    cleaned = "".join(ch for ch in (phone or "") if ch.isdigit())
    if cleaned.startswith("0"):
        cleaned = "66" + cleaned[1:]
    return cleaned


def build_code_sender(config):
    kind = (config.get("OTP_SENDER") or "log").lower()
    if kind == "sms":
        return SmsCodeSender(
            api_url=config.get("SMS_API_URL"),
            api_key=config.get("SMS_API_KEY"),
            api_secret=config.get("SMS_API_SECRET"),
            sender=config.get("SMS_SENDER"),
        )
    if kind == "email":
        return EmailCodeSender(
            api_key=config.get("SENDGRID_API_KEY"),
            from_email=config.get("MAIL_DEFAULT_SENDER"),
        )
    if kind == "log":
        return LogCodeSender()
    raise RuntimeError(f"Unknown OTP_SENDER: {kind}")


def init_code_sender(app):
    app.extensions["code_sender"] = build_code_sender(app.config)


def get_code_sender():
    return current_app.extensions["code_sender"]


def deliver_code(destination, code) -> bool:
    """
    Hand the code to the configured sender after the request is committed.
    Delivery failure never undoes the request; the user can ask for a resend.
    """
    try:
        get_code_sender().send(destination, code)
    except CodeDeliveryError:
        logger.exception("Code delivery to %s failed", destination)
        return False
    return True
