import json
import uuid
from datetime import datetime, timedelta, timezone

import jwt

from app.core.config import settings
from app.models.attendance_record import AttendanceRecord
from app.models.biometric_credential import BiometricCredential
from app.models.biometric_event import BiometricEvent
from app.services.jwt_service import ISSUER

from tests.conftest import EMPLOYEE, HQ
from tests.webauthn_helpers import FakePlatformAuthenticator, b64url

BASE = "/api/v1/biometric"
INSIDE = {"latitude": HQ["latitude"], "longitude": HQ["longitude"]}


def _registration_options(client):
    response = client.post(f"{BASE}/registration/options")
    assert response.status_code == 200
    return response.json()["data"]


def _authentication_options(client):
    response = client.post(f"{BASE}/authentication/options")
    assert response.status_code == 200
    return response.json()["data"]


def _enroll(client, authenticator, options=None, **overrides):
    options = options or _registration_options(client)
    payload = authenticator.create(options["public_key"]["challenge"])
    payload["ceremony_token"] = options["ceremony_token"]
    payload.update(overrides)
    return client.post(f"{BASE}/registration/verify", json=payload)


def _assertion(client, authenticator, options=None):
    options = options or _authentication_options(client)
    payload = authenticator.get(options["public_key"]["challenge"])
    payload["ceremony_token"] = options["ceremony_token"]
    return payload


def _report(client, error_name, ceremony="enroll"):
    return client.post(f"{BASE}/ceremony-errors", json={"ceremony": ceremony, "error_name": error_name})


def test_registration_options_describe_platform_credential(client):
    options = _registration_options(client)

    assert options["expires_in"] == 60
    public_key = options["public_key"]
    assert public_key["rp"]["id"] == "localhost"
    assert public_key["user"]["id"] == b64url(b"101")
    assert public_key["pubKeyCredParams"] == [{"type": "public-key", "alg": -7}]
    assert public_key["authenticatorSelection"]["authenticatorAttachment"] == "platform"
    assert public_key["authenticatorSelection"]["userVerification"] == "required"
    assert public_key["timeout"] == 60000
    assert public_key["excludeCredentials"] == []


def test_enrollment_stores_credential(client, db_session):
    authenticator = FakePlatformAuthenticator()

    response = _enroll(client, authenticator)

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["bc_user_id"] == EMPLOYEE["user_id"]
    assert data["bc_credential_id"] == authenticator.credential_id
    assert data["bc_counter"] == 0
    assert data["bc_transports"] == "internal"

    status = client.get(f"{BASE}/enrollment").json()["data"]
    assert status["enrolled"] is True
    assert status["credential_count"] == 1
    assert status["attempts_remaining"] == 3

    excluded = _registration_options(client)["public_key"]["excludeCredentials"]
    assert excluded == [{"type": "public-key", "id": authenticator.credential_id, "transports": ["internal"]}]


def test_enrolling_same_authenticator_twice_conflicts(client, db_session):
    authenticator = FakePlatformAuthenticator()
    assert _enroll(client, authenticator).status_code == 201

    response = _enroll(client, authenticator)

    assert response.status_code == 409
    assert response.json()["details"]["code"] == "already_enrolled"
    assert db_session.query(BiometricCredential).count() == 1


def test_enrollment_without_public_key_stores_nothing(client, db_session):
    response = _enroll(client, FakePlatformAuthenticator(), public_key=None)

    assert response.status_code == 422
    details = response.json()["details"]
    assert details["code"] == "public_key_unavailable"
    assert details["affordance"] == "fallback_manual"
    assert details["retryable"] is False
    assert details["attempts_remaining"] == 2
    assert db_session.query(BiometricCredential).count() == 0


def test_reused_registration_token_is_rejected(client, db_session):
    options = _registration_options(client)
    assert _enroll(client, FakePlatformAuthenticator(), options=options).status_code == 201

    response = _enroll(client, FakePlatformAuthenticator(), options=options)

    assert response.status_code == 409
    assert response.json()["details"]["code"] == "challenge_replayed"
    assert db_session.query(BiometricCredential).count() == 1


def test_expired_registration_token_is_rejected(client, db_session):
    issued = datetime.now(timezone.utc) - timedelta(minutes=5)
    challenge = b64url(b"e" * 32)
    token = jwt.encode(
        {
            "iss": ISSUER,
            "sub": str(EMPLOYEE["user_id"]),
            "purpose": "enroll",
            "challenge": challenge,
            "jti": str(uuid.uuid4()),
            "iat": int(issued.timestamp()),
            "exp": int((issued + timedelta(seconds=60)).timestamp()),
        },
        settings.CEREMONY_JWT_SECRET,
        algorithm="HS256",
    )
    options = {"ceremony_token": token, "public_key": {"challenge": challenge}}

    response = _enroll(client, FakePlatformAuthenticator(), options=options)

    assert response.status_code == 400
    assert response.json()["details"]["code"] == "challenge_expired"
    assert response.json()["details"]["retryable"] is True


def test_authentication_token_cannot_be_used_for_enrollment(client):
    _enroll(client, FakePlatformAuthenticator())
    options = _authentication_options(client)

    response = _enroll(client, FakePlatformAuthenticator(), options=options)

    assert response.status_code == 400
    assert response.json()["details"]["code"] == "invalid_ceremony"


def test_platform_cancellation_is_retryable_and_stores_nothing(client, db_session):
    response = _report(client, "NotAllowedError")

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["code"] == "permission_denied"
    assert data["affordance"] == "retry"
    assert data["retryable"] is True
    assert data["attempts_remaining"] == 2
    assert db_session.query(BiometricCredential).count() == 0
    assert db_session.query(BiometricEvent).filter(BiometricEvent.be_outcome == "permission_denied").count() == 1


def test_unknown_platform_error_maps_to_unsupported(client):
    data = _report(client, "UnknownError", ceremony="authenticate").json()["data"]

    assert data["code"] == "unsupported"
    assert data["affordance"] == "fallback_manual"
    assert data["attempts_remaining"] is None


def test_enrollment_retry_cap_offers_troubleshooting(client):
    _report(client, "NotAllowedError")
    _report(client, "AbortError")

    third = _report(client, "NotAllowedError").json()["data"]
    assert third["attempts_remaining"] == 0
    assert third["affordance"] == "troubleshoot"
    assert third["retryable"] is False

    status = client.get(f"{BASE}/enrollment").json()["data"]
    assert status["attempts_remaining"] == 0
    assert status["affordance"] == "troubleshoot"

    blocked = client.post(f"{BASE}/registration/options")
    assert blocked.status_code == 429
    assert blocked.json()["details"]["code"] == "too_many_attempts"


def test_authentication_options_without_enrollment(client):
    response = client.post(f"{BASE}/authentication/options")

    assert response.status_code == 404
    details = response.json()["details"]
    assert details["code"] == "no_credential"
    assert details["affordance"] == "fallback_manual"


def test_assertion_advances_counter(client, db_session):
    authenticator = FakePlatformAuthenticator()
    _enroll(client, authenticator)

    options = _authentication_options(client)
    assert options["public_key"]["allowCredentials"][0]["id"] == authenticator.credential_id
    response = client.post(f"{BASE}/authentication/verify", json=_assertion(client, authenticator, options))

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["verified"] is True
    assert data["counter"] == 1
    credential = db_session.query(BiometricCredential).one()
    assert credential.bc_counter == 1
    assert credential.bc_last_used_at is not None


def test_replayed_assertion_is_rejected(client):
    authenticator = FakePlatformAuthenticator()
    _enroll(client, authenticator)
    assertion = _assertion(client, authenticator)
    assert client.post(f"{BASE}/authentication/verify", json=assertion).status_code == 200

    response = client.post(f"{BASE}/authentication/verify", json=assertion)

    assert response.status_code == 403
    assert response.json()["details"]["code"] == "counter_replay"


def test_reused_authentication_token_is_rejected(client):
    authenticator = FakePlatformAuthenticator()
    _enroll(client, authenticator)
    options = _authentication_options(client)
    assert client.post(f"{BASE}/authentication/verify", json=_assertion(client, authenticator, options)).status_code == 200

    response = client.post(f"{BASE}/authentication/verify", json=_assertion(client, authenticator, options))

    assert response.status_code == 409
    assert response.json()["details"]["code"] == "challenge_replayed"


def test_assertion_from_unenrolled_authenticator(client):
    _enroll(client, FakePlatformAuthenticator())

    response = client.post(f"{BASE}/authentication/verify", json=_assertion(client, FakePlatformAuthenticator()))

    assert response.status_code == 404
    assert response.json()["details"]["code"] == "no_credential"


def test_check_in_with_biometric(client, hq, clock, db_session):
    authenticator = FakePlatformAuthenticator()
    _enroll(client, authenticator)

    response = client.post(
        "/api/v1/attendance/check-in",
        json={"position": INSIDE, "biometric": _assertion(client, authenticator)},
    )

    assert response.status_code == 201
    assert response.json()["data"]["at_biometric_verified"] is True
    assert db_session.query(BiometricCredential).one().bc_counter == 1


def test_check_in_with_tampered_signature_stores_nothing(client, hq, clock, db_session):
    authenticator = FakePlatformAuthenticator()
    _enroll(client, authenticator)
    assertion = _assertion(client, authenticator)
    assertion["signature"] = b64url(b"\x30\x06\x02\x01\x01\x02\x01\x01")

    response = client.post("/api/v1/attendance/check-in", json={"position": INSIDE, "biometric": assertion})

    assert response.status_code == 403
    assert response.json()["details"]["code"] == "verification_failed"
    assert db_session.query(AttendanceRecord).count() == 0
    assert db_session.query(BiometricCredential).one().bc_counter == 0


def test_check_in_requires_biometric_when_configured(client, hq, clock, db_session, monkeypatch):
    monkeypatch.setattr(settings, "BIOMETRIC_REQUIRED", True)

    response = client.post("/api/v1/attendance/check-in", json={"position": INSIDE})

    assert response.status_code == 403
    assert response.json()["details"]["code"] == "verification_failed"
    assert db_session.query(AttendanceRecord).count() == 0


def test_check_out_with_biometric(client, hq, clock):
    authenticator = FakePlatformAuthenticator()
    _enroll(client, authenticator)
    attendance_id = client.post(
        "/api/v1/attendance/check-in",
        json={"position": INSIDE, "biometric": _assertion(client, authenticator)},
    ).json()["data"]["at_id"]
    clock.set(datetime(2026, 10, 19, 12, 35, tzinfo=timezone.utc))

    response = client.post(
        f"/api/v1/attendance/{attendance_id}/check-out",
        json={"position": INSIDE, "biometric": _assertion(client, authenticator)},
    )

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["at_biometric_verified_out"] is True
    assert data["at_working_hours"] == 9.0


def test_assertion_with_list_origin_is_audited_as_invalid_ceremony(client, db_session):
    authenticator = FakePlatformAuthenticator()
    _enroll(client, authenticator)
    options = _authentication_options(client)
    assertion = _assertion(client, authenticator, options)
    assertion["client_data_json"] = b64url(json.dumps({
        "type": "webauthn.get",
        "challenge": options["public_key"]["challenge"],
        "origin": ["http://localhost:3000"],
    }).encode("utf-8"))

    response = client.post(f"{BASE}/authentication/verify", json=assertion)

    assert response.status_code == 400
    assert response.json()["details"]["code"] == "invalid_ceremony"
    assert db_session.query(BiometricEvent).filter(
        BiometricEvent.be_ceremony == "authenticate",
        BiometricEvent.be_outcome == "invalid_ceremony"
    ).count() == 1
