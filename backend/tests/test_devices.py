import pytest


@pytest.mark.asyncio
async def test_create_device_and_sensor(client, alarm_services, admin_headers, settle):
    response = await client.post("/api/devices/", json={"name": "ESP32-Patio", "location": "Patio"}, headers=admin_headers)
    assert response.status_code == 201
    device = response.json()
    assert device["status"] == "inactive"
    assert device["sensors"] == []

    response = await client.post(
        f"/api/devices/{device['id']}/sensors", json={"name": "PIR_Patio", "type": "motion"}, headers=admin_headers
    )
    assert response.status_code == 201
    assert response.json()["device_id"] == device["id"]

    # the new names are immediately usable by the gateway
    response = await client.post("/api/alert", json={
        "type": "motion", "message": "movement detected", "device": "ESP32-Patio", "sensor": "PIR_Patio",
    })
    assert response.status_code == 200
    await settle()


@pytest.mark.asyncio
async def test_duplicate_device_and_sensor_names(client, identity, admin_headers):
    response = await client.post("/api/devices/", json={"name": "ESP32"}, headers=admin_headers)
    assert response.status_code == 400

    response = await client.post(
        f"/api/devices/{identity['esp32']}/sensors", json={"name": "PIR_Principal"}, headers=admin_headers
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_get_devices(client, identity, admin_headers):
    response = await client.get("/api/devices/", headers=admin_headers)

    assert response.status_code == 200
    devices = {d["name"]: d for d in response.json()}
    assert sorted(devices["ESP32"]["users"]) == ["admin@alarma.com", "guard@alarma.com"]
    assert [s["name"] for s in devices["ESP32"]["sensors"]] == ["PIR_Principal"]
    assert (await client.get("/api/devices/9999", headers=admin_headers)).status_code == 404


@pytest.mark.asyncio
async def test_user_sees_only_own_device(client, identity, guard_headers):
    response = await client.get(f"/api/devices/{identity['esp32']}", headers=guard_headers)
    assert response.status_code == 200
    assert response.json()["name"] == "ESP32"

    response = await client.get(f"/api/devices/{identity['garage']}", headers=guard_headers)
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_device_management_requires_admin(client, live, identity, guard_headers):
    """Anonymous callers get 401, regular users 403; nothing changes."""
    requests = [
        ("post", "/api/devices/", {"name": "Intruder"}),
        ("get", "/api/devices/", None),
        ("post", f"/api/devices/{identity['esp32']}/sensors", {"name": "Fake"}),
        ("post", f"/api/devices/{identity['garage']}/users", {"email": "guard@alarma.com"}),
        ("patch", f"/api/devices/{identity['esp32']}/status", {"status": "disarmed"}),
    ]
    for method, url, body in requests:
        kwargs = {"json": body} if body is not None else {}
        assert (await client.request(method, url, **kwargs)).status_code == 401
        assert (await client.request(method, url, headers=guard_headers, **kwargs)).status_code == 403

    assert (await client.get(f"/api/devices/{identity['esp32']}")).status_code == 401
    assert live.events == []


@pytest.mark.asyncio
async def test_add_user_to_device(client, alarm_services, identity, admin_headers):
    response = await client.post(
        f"/api/devices/{identity['garage']}/users", json={"email": "guard@alarma.com"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert sorted(response.json()["users"]) == ["guard@alarma.com", "neighbour@alarma.com"]
    assert alarm_services.resolver.recipients_for_device(identity["garage"]) == ["guard@alarma.com", "neighbour@alarma.com"]

    response = await client.post(
        f"/api/devices/{identity['garage']}/users", json={"email": "nobody@alarma.com"}, headers=admin_headers
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_device_status_is_pushed_live(client, live, identity, admin_headers):
    response = await client.patch(
        f"/api/devices/{identity['esp32']}/status", json={"status": "active"}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["status"] == "active"
    assert live.of_type("device_status") == [{"device_id": identity["esp32"], "name": "ESP32", "status": "active"}]
