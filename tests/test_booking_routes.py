from models.machine import MachineStatus


def _create(client, machine_id, date="2024-06-01", time="10:00", camel=False):
    key = "machineId" if camel else "machine_id"
    return client.post("/bookings", json={key: machine_id, "date": date, "time": time})


def test_booking_requires_login(app, machine):
    resp = app.test_client().post("/bookings", json={"machine_id": machine.id, "date": "2024-06-01", "time": "10:00"})
    assert resp.status_code == 401


def test_create_and_list_my_bookings(login, member, machine):
    client = login(member)

    resp = _create(client, machine.id, camel=True)
    assert resp.status_code == 201
    body = resp.get_json()
    assert body["status"] == "Pending"
    assert body["slot_key"] == "2024-06-01-10:00"
    assert body["machine_name"] == "Soldering Station"

    listing = client.get("/bookings").get_json()
    assert [b["id"] for b in listing] == [body["id"]]


def test_create_missing_fields(login, member):
    resp = login(member).post("/bookings", json={"date": "2024-06-01"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "VALIDATION_ERROR"


def test_conflict_is_reported(login, member, other_member, machine):
    assert _create(login(member), machine.id).status_code == 201

    resp = _create(login(other_member), machine.id)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["code"] == "SLOT_CONFLICT"
    assert body["slot"] == "2024-06-01-10:00"


def test_unavailable_machine_surfaces_status(login, member, make_machine):
    m = make_machine(status=MachineStatus.MAINTENANCE.value, maintenance_note="Belt replacement")
    resp = _create(login(member), m.id)
    assert resp.status_code == 409
    body = resp.get_json()
    assert body["code"] == "RESOURCE_UNAVAILABLE"
    assert body["machine_status"] == "Maintenance"
    assert body["maintenance_note"] == "Belt replacement"


def test_certification_required(login, member, certified_machine):
    resp = _create(login(member), certified_machine.id)
    assert resp.status_code == 403
    assert resp.get_json()["code"] == "CERTIFICATION_REQUIRED"


def test_admin_workflow(login, member, admin, machine):
    member_client = login(member)
    admin_client = login(admin)
    booking_id = _create(member_client, machine.id).get_json()["id"]

    resp = member_client.put(f"/bookings/{booking_id}/status", json={"status": "Approved"})
    assert resp.status_code == 403

    resp = admin_client.put(f"/bookings/{booking_id}/status", json={"status": "Approved"})
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "Approved"

    held = admin_client.get(f"/machines/{machine.id}").get_json()["held_slots"]
    assert held == ["2024-06-01-10:00"]

    resp = admin_client.put(f"/bookings/{booking_id}/status", json={"status": "Whatever"})
    assert resp.status_code == 400
    assert resp.get_json()["code"] == "INVALID_STATUS"


def test_member_cancel_route(login, member, machine):
    client = login(member)
    booking_id = _create(client, machine.id).get_json()["id"]

    resp = client.put(f"/bookings/{booking_id}/cancel")
    assert resp.status_code == 200
    assert resp.get_json()["booking"]["status"] == "Canceled"

    resp = client.put(f"/bookings/{booking_id}/status", json={"status": "Pending"})
    assert resp.status_code == 403


def test_get_booking_authorization(login, member, other_member, admin, machine):
    booking_id = _create(login(member), machine.id).get_json()["id"]

    assert login(other_member).get(f"/bookings/{booking_id}").status_code == 403
    assert login(admin).get(f"/bookings/{booking_id}").status_code == 200
    assert login(admin).get("/bookings/9999").status_code == 404


def test_all_bookings_admin_only(login, member, admin, machine):
    member_client = login(member)
    _create(member_client, machine.id)

    assert member_client.get("/bookings/all").status_code == 403

    rows = login(admin).get("/bookings/all").get_json()
    assert len(rows) == 1
    assert rows[0]["user_email"] == member.email
    assert rows[0]["machine_name"] == "Soldering Station"


def test_delete_booking_route(login, member, other_member, machine):
    client = login(member)
    booking_id = _create(client, machine.id).get_json()["id"]

    assert login(other_member).delete(f"/bookings/{booking_id}").status_code == 403
    resp = client.delete(f"/bookings/{booking_id}")
    assert resp.status_code == 200
    assert resp.get_json() == {"success": True}
    assert client.get(f"/bookings/{booking_id}").status_code == 404


def test_booking_audit_trail(login, member, admin, machine):
    booking_id = _create(login(member), machine.id).get_json()["id"]
    admin_client = login(admin)
    admin_client.put(f"/bookings/{booking_id}/status", json={"status": "Approved"})

    rows = admin_client.get(f"/admin/audit-logs?entity=booking&entity_id={booking_id}").get_json()
    actions = [r["action"] for r in rows]
    assert set(actions) == {"BOOKING_CREATE", "BOOKING_STATUS_CHANGE"}
    change = next(r for r in rows if r["action"] == "BOOKING_STATUS_CHANGE")
    assert change["metadata"] == {"from": "Pending", "to": "Approved", "slot": "2024-06-01-10:00"}

    assert login(member).get("/admin/audit-logs").status_code == 403
