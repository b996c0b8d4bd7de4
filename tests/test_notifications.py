"""
Tests for notification channel selection and the SMS provider helpers.
"""

import pytest

from app.config import validate_settings
from app.core.exceptions import ConfigurationError
from app.utils.notifications import (
    EmailService,
    LoggingEmailService,
    LoggingSMSService,
    SMSService,
    build_notification_services,
)

class TestBuildNotificationServices:
    def test_log_mode_uses_stubs(self, test_settings):
        sms, email = build_notification_services(test_settings)

        assert isinstance(sms, LoggingSMSService)
        assert isinstance(email, LoggingEmailService)

    def test_live_mode(self, test_settings):
        config = test_settings.model_copy(update={"NOTIFICATION_MODE": "live"})

        sms, email = build_notification_services(config)

        assert isinstance(sms, SMSService)
        assert isinstance(email, EmailService)

    async def test_stubs_report_success(self):
        assert await LoggingSMSService().send_sms("+919800000000", "hello")
        assert await LoggingEmailService().send_email("a@example.com", "Hi", "hello")

class TestSMSService:
    """Test payload shaping for the HTTP providers."""

    def test_phone_number_formatting(self, test_settings):
        sms = SMSService(test_settings)

        assert sms._format_phone_number("0091 98000-00000") == "+919800000000"
        assert sms._format_phone_number("+91 (980) 000 0000") == "+919800000000"

    def test_generic_payload(self, test_settings):
        sms = SMSService(test_settings)

        payload = sms._prepare_sms_payload("+919800000000", "hello")

        assert sms.provider == "generic"
        assert payload["to"] == "+919800000000"
        assert payload["from"] == test_settings.SMS_SENDER_ID

    def test_twilio_detection(self, test_settings):
        config = test_settings.model_copy(update={"SMS_API_URL": "https://api.twilio.com/Messages.json"})
        sms = SMSService(config)

        payload = sms._prepare_sms_payload("+919800000000", "hello")

        assert sms.provider == "twilio"
        assert payload == {"To": "+919800000000", "From": config.SMS_SENDER_ID, "Body": "hello"}
        assert sms._parse_sms_response({"status": "queued"})
        assert not sms._parse_sms_response({"status": "failed"})

class TestConfiguration:
    def test_missing_secret_key_fails(self, test_settings):
        with pytest.raises(ConfigurationError, match="SECRET_KEY"):
            validate_settings(test_settings.model_copy(update={"SECRET_KEY": ""}))

        validate_settings(test_settings)
