"""Tests for SMS provider selection and the two variants."""

from unittest.mock import Mock

import pytest
import requests
from twilio.base.exceptions import TwilioException, TwilioRestException

from ideahub_ext.sms import MockSmsProvider, TwilioSmsProvider, create_sms_provider

NUMBER = "+14155550123"


class TestProviderSelection:
    def test_mock_by_default(self):
        assert isinstance(create_sms_provider({}), MockSmsProvider)

    def test_twilio_selected(self):
        provider = create_sms_provider(
            {
                "SMS_PROVIDER": "twilio",
                "TWILIO_ACCOUNT_SID": "AC123",
                "TWILIO_AUTH_TOKEN": "secret",
                "TWILIO_PHONE_NUMBER": "+15005550006",
            }
        )

        assert isinstance(provider, TwilioSmsProvider)
        assert provider.from_number == "+15005550006"

    def test_unknown_provider(self):
        with pytest.raises(ValueError):
            create_sms_provider({"SMS_PROVIDER": "fax"})

    def test_app_uses_mock(self, sms):
        assert isinstance(sms, MockSmsProvider)


class TestMockSmsProvider:
    def test_outbox(self, app):
        provider = MockSmsProvider()

        delivery = provider.send(NUMBER, "hello")
        provider.send("+447700900123", "other")

        assert delivery.ok
        assert delivery.provider == "mock"
        assert provider.last_message_for(NUMBER).body == "hello"
        assert provider.last_message_for("+10000000000") is None

        provider.clear()
        assert provider.sent_messages == []


class TestTwilioSmsProvider:
    def test_requires_credentials(self):
        with pytest.raises(ValueError):
            TwilioSmsProvider("", "token", "+15005550006")

    def test_send_uses_configured_sender(self, app):
        client = Mock()
        client.messages.create.return_value = Mock(sid="SM123")
        provider = TwilioSmsProvider("AC123", "secret", "+15005550006", client=client)

        delivery = provider.send(NUMBER, "Your code")

        client.messages.create.assert_called_once_with(body="Your code", from_="+15005550006", to=NUMBER)
        assert delivery.ok
        assert delivery.message_id == "SM123"

    def test_rest_errors_become_failed_delivery(self, app):
        client = Mock()
        client.messages.create.side_effect = TwilioRestException(
            status=400, uri="/Messages.json", msg="Invalid 'To' Phone Number", code=21211
        )
        provider = TwilioSmsProvider("AC123", "secret", "+15005550006", client=client)

        delivery = provider.send(NUMBER, "Your code")

        assert not delivery.ok
        assert delivery.provider == "twilio"
        assert "Invalid" in delivery.error

    def test_transport_errors_become_failed_delivery(self, app):
        client = Mock()
        client.messages.create.side_effect = requests.exceptions.ConnectionError("connection refused")
        provider = TwilioSmsProvider("AC123", "secret", "+15005550006", client=client)

        delivery = provider.send(NUMBER, "Your code")

        assert not delivery.ok
        assert "connection refused" in delivery.error

    def test_sdk_errors_become_failed_delivery(self, app):
        client = Mock()
        client.messages.create.side_effect = TwilioException("unable to build request")
        provider = TwilioSmsProvider("AC123", "secret", "+15005550006", client=client)

        assert not provider.send(NUMBER, "Your code").ok
