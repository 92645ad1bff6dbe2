from datetime import date, timedelta

import pytest

from conftest import auth_headers, login, register, vehicle_form

HOUR = 60 * 60 * 1000


def add_vehicle(client, token, **overrides):
    return client.post("/vehicles", json=vehicle_form(**overrides), headers=auth_headers(token))


def test_root(client):
    assert client.get("/").json()["status"] == "ok"


def test_unauthorized_access(client):
    assert client.get("/vehicles").status_code == 401
    assert client.post("/scans", json={"data": "x"}).status_code == 401


def test_register_rejects_duplicates_and_bad_email(client):
    assert register(client, "driver@vehiscan.test").status_code == 200
    assert register(client, " Driver@VehiScan.test ").status_code == 409
    assert register(client, "not-an-email").status_code == 400
    assert register(client, "short@vehiscan.test", password="123").status_code == 400


def test_me(client, tokens):
    r = client.get("/auth/me", headers=auth_headers(tokens["user1"]))
    assert r.status_code == 200
    assert r.json()["email"] == "user1@vehiscan.test"
    assert r.json()["is_admin"] is False


def test_access_control(client, tokens):
    r = add_vehicle(client, tokens["user1"])
    assert r.status_code == 201
    vehicle_id = r.json()["id"]

    # user2 cannot read it directly
    r = client.get(f"/vehicles/{vehicle_id}", headers=auth_headers(tokens["user2"]))
    assert r.status_code == 403

    r = client.get(f"/vehicles/{vehicle_id}", headers=auth_headers(tokens["admin"]))
    assert r.status_code == 200

    assert client.get("/vehicles", headers=auth_headers(tokens["user2"])).json() == []
    assert len(client.get("/vehicles", headers=auth_headers(tokens["user1"])).json()) == 1


def test_add_vehicle_sanitizes_and_normalizes(client, tokens):
    r = add_vehicle(
        client,
        tokens["user1"],
        make="<b>Toyota</b>",
        color="silver",
        ownerName="Juan  Dela Cruz",
        licensePlate="abc 1234",
    )
    assert r.status_code == 201
    vehicle = r.json()

    assert vehicle["make"] == "TOYOTA"
    assert vehicle["color"] == "SILVER"
    assert vehicle["licensePlate"] == "ABC 1234"
    assert vehicle["ownerName"] == "Juan Dela Cruz"
    assert vehicle["registrationMonth"] == "April"
    assert vehicle["lastRenewal"].startswith("2025-01-10T00:00:00")
    assert vehicle["qrValue"] == f"vehiscan://vehicle/{vehicle['id']}"


def test_add_vehicle_reports_every_invalid_field(client, tokens):
    r = add_vehicle(client, tokens["user1"], chassisNumber="AB12", yearModel="1899")
    assert r.status_code == 422
    assert r.json()["errors"] == [
        "Year must be a valid 4-digit year between 1900 and current year + 2",
        "Chassis number must be 8-25 alphanumeric characters",
    ]
    assert client.get("/vehicles", headers=auth_headers(tokens["user1"])).json() == []


def test_bruteforce_protection(client, clock):
    register(client, "victim@vehiscan.test")

    r = login(client, "victim@vehiscan.test", "WRONGPASS")
    assert r.status_code == 401
    assert "2 attempt(s) remaining" in r.json()["notice"]["message"]

    login(client, "victim@vehiscan.test", "WRONGPASS")
    r = login(client, "victim@vehiscan.test", "WRONGPASS")
    assert r.status_code == 429
    assert r.json()["notice"]["title"] == "Account Locked"

    # correct password is refused while locked, whatever the case of the e-mail
    r = login(client, "VICTIM@vehiscan.test", "secret123")
    assert r.status_code == 429
    assert r.json()["remaining_ms"] == 600_000

    status = client.get("/auth/lockout", params={"email": "victim@vehiscan.test"}).json()
    assert status == {"locked": True, "remaining_ms": 600_000, "countdown": "10:00"}

    clock.advance(600_001)
    assert login(client, "victim@vehiscan.test", "secret123").status_code == 200
    assert client.get("/auth/lockout", params={"email": "victim@vehiscan.test"}).json()["locked"] is False


def test_successful_login_resets_failure_streak(client):
    register(client, "driver@vehiscan.test")
    login(client, "driver@vehiscan.test", "WRONGPASS")
    login(client, "driver@vehiscan.test", "WRONGPASS")
    assert login(client, "driver@vehiscan.test").status_code == 200

    r = login(client, "driver@vehiscan.test", "WRONGPASS")
    assert "2 attempt(s) remaining" in r.json()["notice"]["message"]


def test_scan_flow_records_history(client, tokens):
    renewed = (date.today() - timedelta(days=30)).isoformat()
    vehicle = add_vehicle(client, tokens["user1"], lastRenewal=renewed).json()

    r = client.post(
        "/scans", json={"data": vehicle["qrValue"]}, headers=auth_headers(tokens["user2"])
    )
    assert r.status_code == 200
    body = r.json()
    assert body["registration_status"] == "Registered"
    assert body["vehicle"]["licensePlate"] == "ABC 1234"
    assert body["warning"] is None

    history = client.get("/scans/history", headers=auth_headers(tokens["user2"])).json()
    assert len(history) == 1
    assert history[0]["vehicleId"] == vehicle["id"]
    assert history[0]["registrationStatus"] == "Registered"
    assert history[0]["scanMethod"] == "qr_camera"

    assert client.get("/scans/history", headers=auth_headers(tokens["user1"])).json() == []


def test_scan_reports_expired_registration(client, tokens):
    renewed = (date.today() - timedelta(days=800)).isoformat()
    vehicle = add_vehicle(client, tokens["user1"], lastRenewal=renewed).json()

    r = client.post("/scans", json={"data": vehicle["qrValue"]}, headers=auth_headers(tokens["user1"]))
    assert r.json()["registration_status"] == "Expired"


@pytest.mark.parametrize(
    "data, status",
    [
        ("vehiscan://vehicle/bad!", 400),
        ("vehiscan://vehicle/AAAAAAAAAAAAAAAAAAAA", 404),
        ("", 400),
    ],
)
def test_scan_rejects_unknown_codes(client, tokens, data, status):
    r = client.post("/scans", json={"data": data}, headers=auth_headers(tokens["user1"]))
    assert r.status_code == status


def test_rate_limit(client, tokens):
    vehicle = add_vehicle(client, tokens["user1"]).json()
    headers = auth_headers(tokens["user2"])

    for i in range(10):
        r = client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers)
        assert r.status_code == 200, i

    r = client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers)
    assert r.status_code == 429
    assert r.json()["notice"]["title"] == "Rate Limit Exceeded"

    # other users keep their own budget
    r = client.post("/scans", json={"data": vehicle["qrValue"]}, headers=auth_headers(tokens["user1"]))
    assert r.status_code == 200

    status = client.get("/scans/rate-limit", headers=headers).json()
    assert status["attempts"] == 10
    assert status["is_at_limit"] is True
    assert status["warning_level"] == "critical"
    assert status["usage"]["status"] == "critical"


def test_scan_warns_when_approaching_limit(client, tokens):
    vehicle = add_vehicle(client, tokens["user1"]).json()
    headers = auth_headers(tokens["user2"])

    warnings = [
        client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers).json()["warning"]
        for _ in range(9)
    ]
    assert warnings[:7] == [None] * 7
    assert warnings[7]["title"] == "Warning: Approaching Rate Limit"
    assert "1 scan attempts remaining" in warnings[8]["message"]


def test_rate_limit_window_slides(client, tokens, clock):
    vehicle = add_vehicle(client, tokens["user1"]).json()
    headers = auth_headers(tokens["user2"])

    for _ in range(10):
        client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers)
    assert client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers).status_code == 429

    clock.advance(HOUR)
    assert client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers).status_code == 200


def test_admin_rate_limit_operations(client, tokens):
    vehicle = add_vehicle(client, tokens["user1"]).json()
    user2 = client.get("/auth/me", headers=auth_headers(tokens["user2"])).json()["id"]
    headers = auth_headers(tokens["user2"])

    for _ in range(10):
        client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers)

    admin = auth_headers(tokens["admin"])
    assert client.get(f"/admin/rate-limits/{user2}/scan", headers=headers).status_code == 403
    assert client.get(f"/admin/rate-limits/{user2}/scan", headers=admin).json()["attempts"] == 10

    r = client.delete(f"/admin/rate-limits/{user2}/scan", headers=admin)
    assert r.status_code == 200
    assert client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers).status_code == 200

    r = client.delete("/admin/rate-limits", headers=admin)
    assert r.json() == {"status": "cleared", "removed": 1}


def test_notifications(client, tokens):
    due_soon = (date.today() - timedelta(days=362)).isoformat()
    add_vehicle(client, tokens["user1"], lastRenewal=due_soon)
    add_vehicle(client, tokens["user1"], lastRenewal=date.today().isoformat(), licensePlate="XYZ 9870")

    reminders = client.get("/notifications", headers=auth_headers(tokens["user1"])).json()
    assert len(reminders) == 1
    assert reminders[0]["license_plate"] == "ABC 1234"
    assert "registration is due in" in reminders[0]["message"]


def test_logout(client, tokens):
    r = client.post("/auth/logout", headers=auth_headers(tokens["user1"]))
    assert r.json() == {"status": "logged out"}


def test_delete_scan_history_entry(client, tokens):
    vehicle = add_vehicle(client, tokens["user1"]).json()
    headers = auth_headers(tokens["user2"])
    client.post("/scans", json={"data": vehicle["qrValue"]}, headers=headers)
    scan_id = client.get("/scans/history", headers=headers).json()[0]["id"]

    # only the scanner can remove it
    r = client.delete(f"/scans/history/{scan_id}", headers=auth_headers(tokens["user1"]))
    assert r.status_code == 403

    r = client.delete(f"/scans/history/{scan_id}", headers=headers)
    assert r.json() == {"status": "deleted", "id": scan_id}
    assert client.get("/scans/history", headers=headers).json() == []

    assert client.delete(f"/scans/history/{scan_id}", headers=headers).status_code == 404


def test_link_vehicle_by_chassis_number(client, tokens):
    vehicle = add_vehicle(client, tokens["user1"]).json()
    headers = auth_headers(tokens["user2"])

    r = client.post("/vehicles/link", json={"chassisNumber": "NOSUCHCHASSIS1"}, headers=headers)
    assert r.status_code == 404

    for _ in range(2):
        r = client.post("/vehicles/link", json={"chassisNumber": "jtdbt123456789"}, headers=headers)
        assert r.status_code == 200
        assert r.json()["id"] == vehicle["id"]

    mine = client.get("/vehicles", headers=headers).json()
    assert [v["id"] for v in mine] == [vehicle["id"]]
    assert client.get(f"/vehicles/{vehicle['id']}", headers=headers).status_code == 200


def test_vehicles_matched_by_user_code(client, tokens):
    vehicle = add_vehicle(client, tokens["user1"]).json()
    client.post(
        "/auth/register",
        params={"email": "owner@vehiscan.test", "password": "secret123", "code": "JTDBT123456789"},
    )
    token = login(client, "owner@vehiscan.test").json()["access_token"]

    mine = client.get("/vehicles", headers=auth_headers(token)).json()
    assert [v["id"] for v in mine] == [vehicle["id"]]
    assert mine[0]["registrationStatus"] in ("Registered", "Expired")
