import pytest

from clinic_booking.core.exceptions import NotFoundError, ValidationError
from clinic_booking.core.security import PasskeyType, SessionRole, verify_token
from clinic_booking.models.passkey import Passkey
from clinic_booking.services.passkey_service import DEFAULT_PASSKEYS, PasskeyService

from .conftest import auth_headers


class TestPasskeyService:
    """Tests for hashing and verifying passkeys."""

    def test_set_then_verify(self, db):
        service = PasskeyService(db)
        service.set_passkey("2023-0456", "123456")

        assert service.verify_passkey("2023-0456", "123456") is True
        assert service.verify_passkey("2023-0456", "654321") is False

    def test_passkey_is_stored_hashed(self, db):
        PasskeyService(db).set_passkey("2023-0456", "123456")
        record = db.query(Passkey).filter(Passkey.id_number == "2023-0456").one()
        assert record.passkey_hash != "123456"
        assert record.passkey_hash.startswith("$2")

    def test_hashes_are_salted(self, db):
        service = PasskeyService(db)
        service.set_passkey("A-1", "123456")
        service.set_passkey("A-2", "123456")
        hashes = {p.passkey_hash for p in db.query(Passkey).all()}
        assert len(hashes) == 2

    def test_set_replaces_existing(self, db):
        service = PasskeyService(db)
        service.set_passkey("2023-0456", "123456")
        service.set_passkey("2023-0456", "999999")

        assert db.query(Passkey).count() == 1
        assert service.verify_passkey("2023-0456", "999999") is True
        assert service.verify_passkey("2023-0456", "123456") is False

    @pytest.mark.parametrize("passkey", ["12345", "1234567", "abcdef", "12 456", "١٢٣٤٥٦", "", None])
    def test_malformed_passkey_rejected(self, db, passkey):
        with pytest.raises(ValidationError):
            PasskeyService(db).set_passkey("2023-0456", passkey)

    def test_blank_id_number_rejected(self, db):
        with pytest.raises(ValidationError):
            PasskeyService(db).set_passkey("   ", "123456")

    def test_unknown_id_does_not_verify(self, db):
        assert PasskeyService(db).verify_passkey("nobody", "123456") is False

    def test_malformed_secret_does_not_verify(self, db):
        service = PasskeyService(db)
        service.set_passkey("2023-0456", "123456")
        assert service.verify_passkey("2023-0456", "12345") is False

    def test_role_passkeys(self, db):
        service = PasskeyService(db)
        assert service.verify_role_passkey(PasskeyType.ADMIN, "111111") is True
        assert service.verify_role_passkey("staff", "333333") is True
        assert service.verify_role_passkey(PasskeyType.DR_ABUNDO, "111111") is False

    def test_unconfigured_role_never_verifies(self, db, monkeypatch):
        from clinic_booking.core.config import settings
        monkeypatch.setattr(settings, "STAFF_PASSKEY", None)
        assert PasskeyService(db).verify_role_passkey("staff", "333333") is False

    def test_invalid_role_type(self, db):
        with pytest.raises(ValidationError):
            PasskeyService(db).verify_role_passkey("janitor", "111111")

    def test_delete_missing_passkey(self, db):
        with pytest.raises(NotFoundError):
            PasskeyService(db).delete_passkey("does-not-exist")

    def test_initialize_default_passkeys(self, db):
        count = PasskeyService(db).initialize_default_passkeys()
        assert count == len(DEFAULT_PASSKEYS)
        assert PasskeyService(db).verify_passkey("2023-0456", "123456") is True


class TestPasskeyEndpoints:
    """Tests for the passkey HTTP endpoints."""

    def test_validate_role_passkey_issues_token(self, client):
        response = client.post(
            "/api/auth/validate-passkey",
            json={"passkey": "246810", "type": "dr_abundo"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["isValid"] is True

        claims = verify_token(data["accessToken"])
        assert claims.role == SessionRole.DOCTOR.value
        assert claims.doctor_id == "dr-abundo"

    def test_validate_wrong_role_passkey(self, client):
        response = client.post(
            "/api/auth/validate-passkey",
            json={"passkey": "000000", "type": "admin"}
        )
        assert response.status_code == 200
        assert response.json()["isValid"] is False
        assert response.json().get("accessToken") is None

    def test_validate_unknown_type(self, client):
        response = client.post(
            "/api/auth/validate-passkey",
            json={"passkey": "111111", "type": "janitor"}
        )
        assert response.status_code == 422

    def test_verify_patient_passkey(self, client, db, patient):
        PasskeyService(db).set_passkey(patient.identification_number, "123456")

        response = client.post(
            "/api/verify-patient-passkey",
            json={"idNumber": patient.identification_number, "passkey": "123456"}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["isValid"] is True
        claims = verify_token(data["accessToken"])
        assert claims.sub == patient.id
        assert claims.role == SessionRole.PATIENT.value

    def test_verify_patient_passkey_unknown_and_wrong_look_the_same(self, client, db):
        PasskeyService(db).set_passkey("2023-0456", "123456")

        wrong = client.post(
            "/api/verify-patient-passkey",
            json={"idNumber": "2023-0456", "passkey": "000000"}
        )
        unknown = client.post(
            "/api/verify-patient-passkey",
            json={"idNumber": "1999-0000", "passkey": "000000"}
        )
        assert wrong.status_code == unknown.status_code == 200
        assert wrong.json() == unknown.json() == {
            "success": True,
            "isValid": False,
            "accessToken": None,
            "tokenType": None,
            "expiresIn": None,
        }

    def test_verification_is_rate_limited(self, client):
        for _ in range(10):
            response = client.post(
                "/api/auth/validate-passkey",
                json={"passkey": "000000", "type": "admin"}
            )
            assert response.status_code == 200

        response = client.post(
            "/api/auth/validate-passkey",
            json={"passkey": "000000", "type": "admin"}
        )
        assert response.status_code == 429

    def test_verify_token(self, client, admin_headers):
        response = client.post("/api/auth/verify-token", headers=admin_headers)
        assert response.status_code == 200
        assert response.json()["role"] == "admin"

    def test_verify_bad_token(self, client):
        response = client.post(
            "/api/auth/verify-token",
            headers={"Authorization": "Bearer not-a-token"}
        )
        assert response.status_code == 401

    def test_admin_can_manage_passkeys(self, client, admin_headers):
        response = client.post(
            "/api/passkey",
            json={"idNumber": "2023-0456", "passkey": "123456"},
            headers=admin_headers
        )
        assert response.status_code == 200

        response = client.get("/api/passkey", headers=admin_headers)
        assert response.status_code == 200
        passkeys = response.json()["passkeys"]
        assert [p["idNumber"] for p in passkeys] == ["2023-0456"]
        assert "passkeyHash" not in passkeys[0]

        response = client.delete(f"/api/passkey/{passkeys[0]['id']}", headers=admin_headers)
        assert response.status_code == 200

        response = client.delete(f"/api/passkey/{passkeys[0]['id']}", headers=admin_headers)
        assert response.status_code == 404

    @pytest.mark.parametrize("passkey", ["12345", "", "١٢٣٤٥٦"])
    def test_malformed_passkey_is_bad_request(self, client, admin_headers, passkey):
        response = client.post(
            "/api/passkey",
            json={"idNumber": "2023-0456", "passkey": passkey},
            headers=admin_headers
        )
        assert response.status_code == 400
        assert response.json()["message"] == "Passkey must be 6 digits"

    def test_passkey_routes_require_admin(self, client, staff_headers):
        assert client.get("/api/passkey").status_code in (401, 403)
        assert client.get("/api/passkey", headers=staff_headers).status_code == 403
        patient_headers = auth_headers(SessionRole.PATIENT, "some-patient")
        assert client.get("/api/passkey", headers=patient_headers).status_code == 403

    def test_init_passkeys(self, client, admin_headers):
        response = client.get("/api/init-passkeys", headers=admin_headers)
        assert response.status_code == 200
        response = client.get("/api/passkey", headers=admin_headers)
        assert len(response.json()["passkeys"]) == len(DEFAULT_PASSKEYS)

    def test_init_passkeys_forbidden_in_production(self, client, admin_headers, monkeypatch):
        from clinic_booking.core.config import settings
        monkeypatch.setattr(settings, "ENVIRONMENT", "production")
        response = client.get("/api/init-passkeys", headers=admin_headers)
        assert response.status_code == 403
