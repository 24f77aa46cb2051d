from datetime import timedelta

from citybuilder.utils.time_utils import utcnow

from conftest import register_user, login_headers


def _stored_user(fake_db, email="jane@example.com"):
    return next(u for u in fake_db["users"].documents if u["email"] == email)


# ============================================================
# REGISTER / LOGIN
# ============================================================

def test_register_creates_user(client, fake_db):
    response = register_user(client, email="  Jane@Example.COM ")
    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["user"]["email"] == "jane@example.com"
    assert data["user"]["name"] == "Jane Builder"
    assert "userId" in data["user"]

    stored = _stored_user(fake_db)
    assert stored["password"] != "secret1"
    assert stored["password"].startswith("$2")
    assert stored["is_email_verified"] is False
    assert len(stored["user_nano_id"]) == 12


def test_register_missing_fields(client):
    response = client.post("/api/auth/register", json={"name": "Jane", "email": "jane@example.com"})
    assert response.status_code == 400
    assert response.json()["message"] == "Name, email, and password are required and must be a string"


def test_register_short_password(client):
    response = register_user(client, password="12345")
    assert response.status_code == 400
    assert "at least 6 characters" in response.json()["message"]


def test_register_duplicate_email(client):
    register_user(client)
    response = register_user(client, email="JANE@example.com")
    assert response.status_code == 400
    assert response.json()["message"] == "User already exists with this email; please login"


def test_login_returns_token(client):
    register_user(client)
    response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret1"})
    assert response.status_code == 200
    data = response.json()
    assert data["token"]
    assert data["user"]["email"] == "jane@example.com"


def test_login_wrong_password(client):
    register_user(client)
    response = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "wrong!!"})
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid password, please try again"


def test_login_unknown_email(client):
    response = client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "secret1"})
    assert response.status_code == 400
    assert "does not exist" in response.json()["message"]


def test_logout(client):
    response = client.post("/api/auth/logout")
    assert response.status_code == 200
    assert response.json()["success"] is True


# ============================================================
# USER INFO
# ============================================================

def test_user_info_hides_private_fields(client, auth_headers):
    response = client.get("/api/auth/get-user-info", headers=auth_headers)
    assert response.status_code == 200
    user = response.json()["user"]
    assert user["email"] == "jane@example.com"
    assert user["isEmailVerified"] is False
    assert "password" not in user
    assert "resetPasswordOtp" not in user


def test_authenticated_user_info_requires_token(client):
    response = client.get("/api/auth/authenticated-user-info")
    assert response.status_code == 401
    assert response.json()["message"] == "Unauthorized - no token - please login"


# ============================================================
# EMAIL VERIFICATION
# ============================================================

def test_email_verification_flow(client, fake_db, auth_headers):
    response = client.post("/api/auth/send-email-verification-otp", headers=auth_headers)
    assert response.status_code == 200

    otp = _stored_user(fake_db)["account_verification_otp"]
    assert len(otp) == 6 and otp.isdigit()

    response = client.post(
        "/api/auth/confirm-email-verification-otp",
        json={"otp": otp},
        headers=auth_headers
    )
    assert response.status_code == 200

    stored = _stored_user(fake_db)
    assert stored["is_email_verified"] is True
    assert stored["account_verification_otp"] == ""

    # Already verified
    response = client.post("/api/auth/send-email-verification-otp", headers=auth_headers)
    assert response.status_code == 400
    assert "already verified" in response.json()["message"]


def test_confirm_email_otp_wrong_code(client, fake_db, auth_headers):
    client.post("/api/auth/send-email-verification-otp", headers=auth_headers)
    otp = _stored_user(fake_db)["account_verification_otp"]
    wrong = "000000" if otp != "000000" else "111111"

    response = client.post(
        "/api/auth/confirm-email-verification-otp",
        json={"otp": wrong},
        headers=auth_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OTP, please enter the OTP sent via email"


def test_confirm_email_otp_missing_body(client, auth_headers):
    response = client.post("/api/auth/confirm-email-verification-otp", headers=auth_headers)
    assert response.status_code == 400
    assert "OTP is required" in response.json()["message"]


def test_confirm_email_otp_expired(client, fake_db, auth_headers):
    client.post("/api/auth/send-email-verification-otp", headers=auth_headers)
    stored = _stored_user(fake_db)
    stored["account_verification_otp_expiry"] = utcnow() - timedelta(minutes=1)

    response = client.post(
        "/api/auth/confirm-email-verification-otp",
        json={"otp": stored["account_verification_otp"]},
        headers=auth_headers
    )
    assert response.status_code == 400
    assert "expired" in response.json()["message"]


# ============================================================
# PASSWORD RESET
# ============================================================

def test_reset_password_flow(client, fake_db):
    register_user(client)

    response = client.post("/api/auth/send-reset-password-email", json={"email": "jane@example.com"})
    assert response.status_code == 200
    otp = _stored_user(fake_db)["reset_password_otp"]

    response = client.post(
        "/api/auth/verify-reset-password-otp",
        json={"email": "jane@example.com", "resetPasswordOTP": otp}
    )
    assert response.status_code == 200
    # Verification does not consume the code
    assert _stored_user(fake_db)["reset_password_otp"] == otp

    response = client.post(
        "/api/auth/reset-password",
        json={"email": "jane@example.com", "resetPasswordOTP": otp, "newPassword": "brandnew"}
    )
    assert response.status_code == 200
    assert _stored_user(fake_db)["reset_password_otp"] == ""

    login_headers(client, password="brandnew")
    old = client.post("/api/auth/login", json={"email": "jane@example.com", "password": "secret1"})
    assert old.status_code == 400


def test_reset_password_otp_is_single_use(client, fake_db):
    register_user(client)
    client.post("/api/auth/send-reset-password-email", json={"email": "jane@example.com"})
    otp = _stored_user(fake_db)["reset_password_otp"]
    body = {"email": "jane@example.com", "resetPasswordOTP": otp, "newPassword": "brandnew"}

    assert client.post("/api/auth/reset-password", json=body).status_code == 200

    response = client.post("/api/auth/reset-password", json=body)
    assert response.status_code == 400
    assert response.json()["message"] == "No reset OTP found, please request a new one"


def test_reset_password_unknown_email(client):
    response = client.post("/api/auth/send-reset-password-email", json={"email": "ghost@example.com"})
    assert response.status_code == 400


def test_verify_reset_otp_requires_fields(client):
    response = client.post("/api/auth/verify-reset-password-otp", json={"email": "jane@example.com"})
    assert response.status_code == 400
    assert response.json()["message"] == "Email and OTP are required"



def test_reset_password_rejects_expired_otp(client, fake_db):
    register_user(client)
    client.post("/api/auth/send-reset-password-email", json={"email": "jane@example.com"})
    stored = _stored_user(fake_db)
    stored["reset_password_otp_expiry"] = utcnow() - timedelta(seconds=1)

    response = client.post(
        "/api/auth/reset-password",
        json={"email": "jane@example.com", "resetPasswordOTP": stored["reset_password_otp"], "newPassword": "brandnew"}
    )
    assert response.status_code == 400
    assert response.json()["message"] == "OTP has expired, please request a new one"
