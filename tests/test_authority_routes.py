from conftest import OFFICER, OTHER_TOURIST, TOURIST, make_payload


def seed_users(db):
    db.collection("users").document(TOURIST.id).set(
        {"username": "Asha", "email": "asha@example.com", "phone": "+1-555-0100", "role": "tourist"}
    )
    db.collection("users").document(OTHER_TOURIST.id).set(
        {"username": "Ben", "email": "ben@example.com", "role": "tourist"}
    )


def test_tourist_cannot_use_authority_routes(client):
    response = client.get("/authority/complaints")
    assert response.status_code == 403
    assert response.json()["error"] == "Forbidden"


def test_missing_token_is_unauthorized(client):
    from app.main import app
    from app.utils.security import get_current_user

    app.dependency_overrides.pop(get_current_user)
    response = client.get("/authority/complaints")

    assert response.status_code == 401
    assert response.json()["error"] == "Unauthorized"


def test_list_complaints_as_alerts(client, login, service, db):
    seed_users(db)
    service.submit(TOURIST, make_payload(title="Wallet stolen near ghat"))
    service.submit(OTHER_TOURIST, make_payload(category="medical_help", urgency="critical", title="Heat stroke"))
    service.submit_emergency(TOURIST)
    login(OFFICER)

    response = client.get("/authority/complaints")

    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 3
    alerts = body["complaints"]
    assert alerts[0]["type"] == "panic_button"
    assert alerts[0]["reportedBy"] == "Emergency SOS"
    assert alerts[1]["touristName"] == "Ben"
    assert alerts[1]["severity"] == "critical"
    assert alerts[2]["coordinates"] == {"lat": 25.3066, "lng": 83.0104}


def test_list_filters_and_search(client, login, service):
    service.submit(TOURIST, make_payload(title="Wallet stolen near ghat"))
    service.submit(TOURIST, make_payload(category="medical_help", urgency="critical", title="Heat stroke"))
    service.submit_emergency(OTHER_TOURIST)
    login(OFFICER)

    by_department = client.get("/authority/complaints", params={"assignedDepartment": "medical_emergency"}).json()
    assert [c["title"] for c in by_department["complaints"]] == ["Heat stroke"]

    emergencies = client.get("/authority/complaints", params={"isEmergency": "true"}).json()
    assert [c["title"] for c in emergencies["complaints"]] == ["Emergency SOS Alert"]

    searched = client.get("/authority/complaints", params={"search": "STOLEN"}).json()
    assert [c["title"] for c in searched["complaints"]] == ["Wallet stolen near ghat"]

    by_priority = client.get("/authority/complaints", params={"sortBy": "priority", "sortOrder": "asc"}).json()
    assert by_priority["complaints"][0]["title"] == "Wallet stolen near ghat"


def test_invalid_sort_field(client, login):
    login(OFFICER)
    response = client.get("/authority/complaints", params={"sortBy": "password"})
    assert response.status_code == 400


def test_stats(client, login, service):
    first = service.submit(TOURIST, make_payload(urgency="critical"))
    service.submit_emergency(TOURIST)
    service.escalate(first.id)
    service.resolve(first.id, "Handled")
    login(OFFICER)

    response = client.get("/authority/complaints/stats", params={"timeframe": "7d"})

    assert response.status_code == 200
    body = response.json()
    assert body["timeframe"] == "7d"
    summary = body["stats"]["summary"]
    assert summary["total"] == 2
    assert summary["critical"] == 2
    assert summary["resolved"] == 1
    assert summary["resolutionRate"] == 50.0

    fallback = client.get("/authority/complaints/stats", params={"timeframe": "2h"})
    assert fallback.status_code == 200
    assert fallback.json()["timeframe"] == "24h"


def test_nearby(client, login, service):
    service.submit(TOURIST, make_payload(title="Near", location={"address": "Ghat", "coordinates": [83.0104, 25.3066]}))
    service.submit(TOURIST, make_payload(title="Far", location={"address": "Delhi", "coordinates": [77.2090, 28.6139]}))
    service.submit(TOURIST, make_payload(title="Nowhere", location={"address": "Unknown"}))
    login(OFFICER)

    response = client.get("/authority/complaints/nearby", params={"lat": 25.3070, "lng": 83.0100, "radius": 2000})

    assert response.status_code == 200
    markers = response.json()["complaints"]
    assert len(markers) == 1
    assert markers[0]["coordinates"] == {"lat": 25.3066, "lng": 83.0104}

    assert client.get("/authority/complaints/nearby", params={"lat": 25.3}).status_code == 400


def test_complaint_details(client, login, service, db):
    seed_users(db)
    complaint = service.submit(TOURIST, make_payload(additionalInfo="Brown leather wallet"))
    login(OFFICER)

    response = client.get(f"/authority/complaints/{complaint.id}")

    assert response.status_code == 200
    detail = response.json()["complaint"]
    assert detail["touristEmail"] == "asha@example.com"
    assert detail["additionalInfo"] == "Brown leather wallet"
    assert detail["status"] == "active"
    assert detail["complaintStatus"] == "submitted"


def test_full_handling_flow(client, login, service, db):
    complaint = service.submit(TOURIST, make_payload())
    login(OFFICER)
    base = f"/authority/complaints/{complaint.id}"

    ack = client.patch(f"{base}/acknowledge", json={"notes": "Team dispatched"})
    assert ack.status_code == 200
    assert ack.json()["complaint"]["displayStatus"] == "acknowledged"

    assert client.patch(f"{base}/assign", json={"officerId": "officer-7"}).status_code == 200
    assert client.patch(f"{base}/status", json={"status": "in_progress"}).json()["complaint"]["status"] == "in_progress"

    message = client.post(f"{base}/communication", json={"message": "We found your wallet."})
    assert message.status_code == 201
    assert message.json()["communication"]["from"] == "officer"

    resolved = client.patch(f"{base}/resolve", json={"resolutionNotes": "Returned to owner"})
    assert resolved.status_code == 200
    assert resolved.json()["complaint"]["resolution"]["actionTaken"] == "Issue resolved by authority"

    login(TOURIST)
    feedback = client.post(f"/sos/{complaint.id}/feedback", json={"rating": 5, "comment": "Thanks"})
    assert feedback.status_code == 200
    duplicate = client.post(f"/sos/{complaint.id}/feedback", json={"rating": 3})
    assert duplicate.status_code == 409
    assert duplicate.json()["error"] == "AlreadyRated"

    messages = [c["message"] for c in client.get(f"/sos/{complaint.id}").json()["complaint"]["communications"]]
    assert messages[0] == "Complaint submitted"
    assert messages[1] == "Status changed from submitted to under_review: Acknowledged by Inspector Rao: Team dispatched"
    assert messages[-1] == "Feedback submitted: 5/5"


def test_resolve_without_notes(client, login, service):
    complaint = service.submit(TOURIST, make_payload())
    service.escalate(complaint.id)
    login(OFFICER)

    response = client.patch(f"/authority/complaints/{complaint.id}/resolve", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "MissingResolutionNotes"
    assert service.get(complaint.id).status == "escalated"


def test_illegal_transition_is_conflict(client, login, service):
    complaint = service.submit(TOURIST, make_payload())
    login(OFFICER)

    response = client.patch(f"/authority/complaints/{complaint.id}/status", json={"status": "in_progress"})

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"


def test_submitted_complaint_cannot_be_closed_by_authority(client, login, service):
    complaint = service.submit(TOURIST, make_payload())
    login(OFFICER)

    response = client.patch(f"/authority/complaints/{complaint.id}/status", json={"status": "closed"})

    assert response.status_code == 409
    assert response.json()["error"] == "InvalidTransition"
    assert service.get(complaint.id).status == "submitted"


def test_escalate(client, login, service):
    complaint = service.submit(TOURIST, make_payload(urgency="medium"))
    login(OFFICER)

    response = client.patch(
        f"/authority/complaints/{complaint.id}/escalate",
        json={"firNumber": "FIR-77", "escalationNotes": "Organised theft ring"}
    )

    assert response.status_code == 200
    escalation = response.json()["complaint"]["escalation"]
    assert escalation["firNumber"] == "FIR-77"
    assert escalation["escalatedBy"] == "Inspector Rao"
    stored = service.get(complaint.id)
    assert stored.priority == "normal"
    assert stored.assigned_department == "police"


def test_soft_delete(client, login, service):
    complaint = service.submit(TOURIST, make_payload())
    login(OFFICER)

    assert client.delete(f"/authority/complaints/{complaint.id}").status_code == 200
    assert client.get(f"/authority/complaints/{complaint.id}").status_code == 404
    assert client.get("/authority/complaints").json()["pagination"]["total"] == 0


def test_tourist_safety(client, login, service, db):
    seed_users(db)
    service.submit(TOURIST, make_payload())
    login(OFFICER)

    response = client.get(f"/authority/tourists/{TOURIST.id}/safety")

    assert response.status_code == 200
    tourist = response.json()["tourist"]
    assert tourist["username"] == "Asha"
    assert tourist["safetyScore"] == 75
    assert tourist["riskLevel"] == "low"
    assert tourist["totalComplaints"] == 1

    assert client.get("/authority/tourists/nobody/safety").status_code == 404
