"""Tests for one-time code issuance, hashing and verification."""

from unittest.mock import Mock

import pytest
import requests

from ideahub_auth.errors import MobileTakenError, OtpInvalidError, SmsDeliveryError, UserNotFoundError
from ideahub_auth.otp_service import OtpEngine, generate_code, hash_code, verify_code_hash
from ideahub_auth.sessions import SessionManager
from ideahub_auth.store import CredentialStore
from ideahub_ext.errors import ValidationError
from ideahub_ext.sms import SmsDelivery, TwilioSmsProvider
from ideahub_models.otp import OneTimeCode

NUMBER = "+14155550123"


@pytest.fixture
def store(app):
    return CredentialStore()


@pytest.fixture
def engine(store, sms, clock):
    return OtpEngine(store, sms, SessionManager(store, clock=clock), ttl_minutes=5, hash_iterations=1000, clock=clock)


class TestCodeHashing:
    def test_generated_codes_are_six_digits(self):
        for _ in range(50):
            code = generate_code()
            assert len(code) == 6
            assert code.isdigit()

    def test_hash_round_trip(self):
        stored = hash_code("123456", iterations=1000)

        assert stored.startswith("pbkdf2_sha256$1000$")
        assert "123456" not in stored
        assert verify_code_hash("123456", stored)
        assert not verify_code_hash("654321", stored)

    @pytest.mark.parametrize("stored", ["", "garbage", "md5$1$aa$bb", "pbkdf2_sha256$x$zz$yy"])
    def test_malformed_hash_never_matches(self, stored):
        assert not verify_code_hash("123456", stored)


class TestRequestCode:
    def test_persists_hash_and_sends_raw_code(self, engine, store, sms, sent_code, clock):
        record = engine.request_code(NUMBER)

        code = sent_code(NUMBER)
        assert record.mobile_number == NUMBER
        assert record.code_hash != code
        assert verify_code_hash(code, record.code_hash)
        assert record.consumed is False
        assert (record.expires_at - clock()).total_seconds() == 300
        assert "expires in 5 minutes" in sms.last_message_for(NUMBER).body

    def test_new_request_is_not_blocked_by_outstanding_code(self, engine, store):
        engine.request_code(NUMBER)
        engine.request_code(NUMBER)

        assert OneTimeCode.query.filter_by(mobile_number=NUMBER).count() == 2

    def test_created_at_follows_injected_clock(self, engine, store, clock):
        record = engine.request_code(NUMBER)

        assert record.created_at == clock()

    def test_latest_code_breaks_timestamp_ties_by_insertion_order(self, engine, store):
        first = engine.request_code(NUMBER)
        second = engine.request_code(NUMBER)

        assert first.created_at == second.created_at
        assert store.find_latest_code_for(NUMBER).id == second.id

    def test_delivery_failure_surfaces_as_internal_error(self, store, clock):
        failing = Mock()
        failing.send.return_value = SmsDelivery(ok=False, provider="twilio", error="unreachable")
        engine = OtpEngine(store, failing, SessionManager(store, clock=clock), hash_iterations=1000, clock=clock)

        with pytest.raises(SmsDeliveryError) as excinfo:
            engine.request_code(NUMBER)

        assert excinfo.value.code == "INTERNAL_ERROR"
        assert excinfo.value.http_status == 500
        assert "unreachable" not in excinfo.value.user_msg

    def test_twilio_connection_error_surfaces_as_internal_error(self, store, clock):
        client = Mock()
        client.messages.create.side_effect = requests.exceptions.ConnectionError("connection refused")
        twilio = TwilioSmsProvider("AC123", "secret", "+15005550006", client=client)
        engine = OtpEngine(store, twilio, SessionManager(store, clock=clock), hash_iterations=1000, clock=clock)

        with pytest.raises(SmsDeliveryError) as excinfo:
            engine.request_code(NUMBER)

        assert excinfo.value.code == "INTERNAL_ERROR"
        assert "connection refused" not in excinfo.value.user_msg


class TestVerify:
    def test_correct_code_opens_session(self, engine, store, sent_code):
        user = engine.register_mobile(NUMBER)
        engine.request_code(NUMBER)

        session = engine.verify_code(NUMBER, sent_code(NUMBER))

        assert session.user_id == user.id
        assert store.find_latest_code_for(NUMBER).consumed is True

    def test_no_code(self, engine):
        engine.register_mobile(NUMBER)

        with pytest.raises(OtpInvalidError):
            engine.verify_code(NUMBER, "123456")

    def test_wrong_code_does_not_consume(self, engine, store, sent_code):
        engine.register_mobile(NUMBER)
        engine.request_code(NUMBER)
        code = sent_code(NUMBER)
        wrong = "000000" if code != "000000" else "111111"

        with pytest.raises(OtpInvalidError):
            engine.verify_code(NUMBER, wrong)
        assert store.find_latest_code_for(NUMBER).consumed is False

        assert engine.verify_code(NUMBER, code) is not None

    def test_expired_code_rejected_even_when_correct(self, engine, sent_code, clock):
        engine.register_mobile(NUMBER)
        engine.request_code(NUMBER)
        clock.advance(minutes=5, seconds=1)

        with pytest.raises(OtpInvalidError):
            engine.verify_code(NUMBER, sent_code(NUMBER))

    def test_code_valid_until_expiry_instant(self, engine, sent_code, clock):
        engine.register_mobile(NUMBER)
        engine.request_code(NUMBER)
        clock.advance(minutes=5)

        assert engine.verify_code(NUMBER, sent_code(NUMBER)) is not None

    def test_consumed_code_rejected(self, engine, sent_code):
        engine.register_mobile(NUMBER)
        engine.request_code(NUMBER)
        code = sent_code(NUMBER)
        engine.verify_code(NUMBER, code)

        with pytest.raises(OtpInvalidError):
            engine.verify_code(NUMBER, code)

    def test_latest_code_supersedes_previous(self, engine, sent_code):
        engine.register_mobile(NUMBER)
        engine.request_code(NUMBER)
        first = sent_code(NUMBER)
        engine.request_code(NUMBER)
        second = sent_code(NUMBER)

        if first != second:
            with pytest.raises(OtpInvalidError):
                engine.verify_code(NUMBER, first)
        assert engine.verify_code(NUMBER, second) is not None

    def test_unregistered_number_consumes_then_fails(self, engine, store, sent_code):
        engine.request_code(NUMBER)

        with pytest.raises(UserNotFoundError):
            engine.verify_code(NUMBER, sent_code(NUMBER))
        assert store.find_latest_code_for(NUMBER).consumed is True

    def test_failure_causes_are_indistinguishable(self, engine, sent_code, clock):
        engine.register_mobile(NUMBER)
        errors = []

        with pytest.raises(OtpInvalidError) as no_code:
            engine.verify_code(NUMBER, "123456")
        errors.append(no_code.value)

        engine.request_code(NUMBER)
        code = sent_code(NUMBER)
        with pytest.raises(OtpInvalidError) as wrong:
            engine.verify_code(NUMBER, "000000" if code != "000000" else "111111")
        errors.append(wrong.value)

        engine.verify_code(NUMBER, code)
        with pytest.raises(OtpInvalidError) as consumed:
            engine.verify_code(NUMBER, code)
        errors.append(consumed.value)

        engine.request_code(NUMBER)
        clock.advance(minutes=6)
        with pytest.raises(OtpInvalidError) as expired:
            engine.verify_code(NUMBER, sent_code(NUMBER))
        errors.append(expired.value)

        payloads = {repr(error.payload()) for error in errors}
        assert len(payloads) == 1

    def test_purge_expired(self, engine, store, clock):
        engine.request_code(NUMBER)
        clock.advance(minutes=10)
        engine.request_code(NUMBER)

        assert engine.purge_expired() == 1
        assert OneTimeCode.query.count() == 1


class TestRegisterMobile:
    def test_registers_number(self, engine):
        user = engine.register_mobile(NUMBER)

        assert user.mobile_number == NUMBER
        assert user.username is None
        assert user.password_hash is None

    @pytest.mark.parametrize("number", ["14155550123", "+0123456", "+1", "+1415555012345678", "+1 415 555 0123", ""])
    def test_rejects_non_e164(self, engine, number):
        with pytest.raises(ValidationError):
            engine.register_mobile(number)

    def test_duplicate_number(self, engine):
        engine.register_mobile(NUMBER)

        with pytest.raises(MobileTakenError) as excinfo:
            engine.register_mobile(NUMBER)

        assert excinfo.value.code == "MOBILE_TAKEN"
