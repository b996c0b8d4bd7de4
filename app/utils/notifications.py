import asyncio
import aiohttp
import aiosmtplib
import base64
import logging
from typing import Dict, Tuple
from abc import ABC, abstractmethod
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

from app.config import Settings

logger = logging.getLogger(__name__)

def _mask(recipient: str) -> str:
    return f"{recipient[:6]}****"

class SMSSender(ABC):
    """Fire-and-forget SMS: returns success/failure, one recipient per call"""

    @abstractmethod
    async def send_sms(self, phone_number: str, message: str) -> bool:
        pass

class EmailSender(ABC):
    """Fire-and-forget email: returns success/failure, one recipient per call"""

    @abstractmethod
    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        pass

class LoggingSMSService(SMSSender):
    """Stub SMS channel: logs the message instead of sending it"""

    async def send_sms(self, phone_number: str, message: str) -> bool:
        logger.info(f"SMS to {phone_number}: {message}")
        return True

class LoggingEmailService(EmailSender):
    """Stub email channel: logs the message instead of sending it"""

    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        logger.info(f"Email to {to_email}: {subject} - {body}")
        return True

class SMSService(SMSSender):
    """SMS over an HTTP provider API"""

    def __init__(self, config: Settings):
        self.api_key = config.SMS_API_KEY
        self.api_url = config.SMS_API_URL
        self.sender_id = config.SMS_SENDER_ID
        self.provider = self._detect_provider()

    def _detect_provider(self) -> str:
        """Detect SMS provider based on API URL"""
        if "twilio" in self.api_url.lower():
            return "twilio"
        return "generic"

    async def send_sms(self, phone_number: str, message: str) -> bool:
        try:
            formatted_number = self._format_phone_number(phone_number)
            payload = self._prepare_sms_payload(formatted_number, message)
            success = await self._send_sms_request(payload)

            if success:
                logger.info(f"SMS sent successfully to {_mask(formatted_number)}")
            else:
                logger.error(f"Failed to send SMS to {_mask(formatted_number)}")

            return success

        except Exception as e:
            logger.error(f"SMS sending error: {e}")
            return False

    def _format_phone_number(self, phone_number: str) -> str:
        """Strip everything but digits and a leading +"""
        cleaned = ''.join(c for c in phone_number if c.isdigit() or c == '+')
        if cleaned.startswith('00'):
            cleaned = '+' + cleaned[2:]
        return cleaned

    def _prepare_sms_payload(self, phone_number: str, message: str) -> Dict:
        if self.provider == "twilio":
            return {
                "To": phone_number,
                "From": self.sender_id,
                "Body": message
            }
        return {
            "to": phone_number,
            "message": message,
            "from": self.sender_id,
            "api_key": self.api_key
        }

    async def _send_sms_request(self, payload: Dict) -> bool:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json"
        }
        if self.provider == "twilio":
            credentials = base64.b64encode(f"{self.api_key}:token".encode()).decode()
            headers["Authorization"] = f"Basic {credentials}"

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    self.api_url,
                    json=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=30)
                ) as response:
                    if response.status != 200:
                        logger.error(f"SMS API error: {response.status} - {await response.text()}")
                        return False
                    return self._parse_sms_response(await response.json())

        except asyncio.TimeoutError:
            logger.error("SMS request timeout")
            return False

    def _parse_sms_response(self, response_data: Dict) -> bool:
        if self.provider == "twilio":
            return response_data.get("status") in ["queued", "sent"]
        return (
            response_data.get("success", False) or
            response_data.get("status") == "success" or
            "message_id" in response_data
        )

class EmailService(EmailSender):
    """Email over SMTP"""

    def __init__(self, config: Settings):
        self.smtp_host = config.SMTP_HOST
        self.smtp_port = config.SMTP_PORT
        self.smtp_username = config.SMTP_USERNAME
        self.smtp_password = config.SMTP_PASSWORD
        self.from_email = config.FROM_EMAIL

    async def send_email(self, to_email: str, subject: str, body: str) -> bool:
        try:
            message = MIMEMultipart('alternative')
            message['From'] = self.from_email
            message['To'] = to_email
            message['Subject'] = subject
            message.attach(MIMEText(body, 'plain'))

            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                start_tls=True,
                username=self.smtp_username or None,
                password=self.smtp_password or None,
            )

            logger.info(f"Email sent successfully to {to_email}")
            return True

        except Exception as e:
            logger.error(f"Email sending error to {to_email}: {e}")
            return False

def build_notification_services(config: Settings) -> Tuple[SMSSender, EmailSender]:
    """Pick the SMS/email channels for NOTIFICATION_MODE ("log" or "live")"""
    if config.NOTIFICATION_MODE == "live":
        return SMSService(config), EmailService(config)
    return LoggingSMSService(), LoggingEmailService()
