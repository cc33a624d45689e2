from fieldhub.auth.security import decode_token

from conftest import auth_headers


def register_payload(**overrides):
    payload = {
        "username": "newbie",
        "password": "hunter22",
        "name": "New Customer",
        "email": "newbie@example.com",
        "phone": "+13375550200",
    }
    payload.update(overrides)
    return payload


def test_health(client):
    res = client.get("/health")
    assert res.status_code == 200
    assert res.json()["status"] == "ok"


def test_register_creates_client_and_returns_token(client):
    res = client.post("/api/register", json=register_payload())

    assert res.status_code == 201
    body = res.json()
    assert body["tokenType"] == "bearer"
    assert body["user"]["role"] == "client"
    assert "passwordHash" not in body["user"]
    claims = decode_token(body["accessToken"])
    assert claims["sub"] == str(body["user"]["id"])
    assert claims["role"] == "client"


def test_register_ignores_requested_role(client):
    res = client.post("/api/register", json=register_payload(role="admin"))
    assert res.json()["user"]["role"] == "client"


def test_register_rejects_duplicates_and_bad_input(client):
    client.post("/api/register", json=register_payload())

    duplicate = client.post("/api/register", json=register_payload(email="other@example.com"))
    assert duplicate.status_code == 400
    assert duplicate.text == "Username already exists"

    invalid = client.post("/api/register", json=register_payload(username="ab", password="123", email="nope"))
    assert invalid.status_code == 400
    paths = {tuple(e["path"]) for e in invalid.json()["errors"]}
    assert {("username",), ("password",), ("email",)} <= paths


def test_login(client, customer):
    res = client.post("/api/login", json={"username": "carol", "password": "secret123"})

    assert res.status_code == 200
    token = res.json()["accessToken"]
    me = client.get("/api/user", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["name"] == "Carol Customer"


def test_login_failures(client, db_session, customer):
    wrong = client.post("/api/login", json={"username": "carol", "password": "wrong"})
    assert wrong.status_code == 401
    assert wrong.text == "Invalid credentials"
    assert client.post("/api/login", json={"username": "ghost", "password": "secret123"}).status_code == 401

    customer.is_active = False
    db_session.commit()
    assert client.post("/api/login", json={"username": "carol", "password": "secret123"}).status_code == 401


def test_bad_tokens(client):
    assert client.get("/api/user").status_code == 401
    res = client.get("/api/user", headers={"Authorization": "Bearer not-a-token"})
    assert res.status_code == 401
    assert res.text == "Invalid token"


def test_logout(client, customer):
    assert client.post("/api/logout", headers=auth_headers(customer)).json() == {"success": True}


def test_change_password(client, customer):
    headers = auth_headers(customer)

    wrong = client.post("/api/change-password", headers=headers,
                        json={"currentPassword": "nope", "newPassword": "brandnew1"})
    assert wrong.status_code == 400
    assert wrong.text == "Current password is incorrect"

    ok = client.post("/api/change-password", headers=headers,
                     json={"currentPassword": "secret123", "newPassword": "brandnew1"})
    assert ok.status_code == 200
    assert client.post("/api/login", json={"username": "carol", "password": "brandnew1"}).status_code == 200


def test_reset_password_is_admin_only(client, admin, customer, make_user):
    owner = make_user("owner")
    body = {"userId": customer.id, "newPassword": "resetme1"}

    assert client.post("/api/reset-password", headers=auth_headers(owner), json=body).status_code == 403
    assert client.post("/api/reset-password", headers=auth_headers(admin), json=body).status_code == 200
    assert client.post("/api/login", json={"username": "carol", "password": "resetme1"}).status_code == 200
    missing = client.post("/api/reset-password", headers=auth_headers(admin), json={"userId": 999, "newPassword": "resetme1"})
    assert missing.status_code == 404


def test_user_directory(client, admin, customer, technician):
    res = client.get("/api/users?role=technician", headers=auth_headers(admin))
    assert [u["username"] for u in res.json()] == ["tech"]

    found = client.get("/api/users?q=carol", headers=auth_headers(admin))
    assert [u["id"] for u in found.json()] == [customer.id]

    assert client.get("/api/users", headers=auth_headers(customer)).status_code == 403
    techs = client.get("/api/users/technicians", headers=auth_headers(customer))
    assert [u["name"] for u in techs.json()] == ["Tom Technician"]


def test_admin_promotes_user(client, admin, customer):
    res = client.patch(f"/api/users/{customer.id}", headers=auth_headers(admin), json={"role": "technician"})

    assert res.status_code == 200
    assert res.json()["role"] == "technician"
    assert client.patch(f"/api/users/{customer.id}", headers=auth_headers(admin),
                        json={"role": "overlord"}).status_code == 400
    assert client.patch("/api/users/999", headers=auth_headers(admin), json={"name": "x"}).status_code == 404
