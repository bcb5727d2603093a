"""
Tests for trip, balance and spend-status endpoints.
"""


def create_trip(client, headers, **extra):
    response = client.post("/api/trips", json={"name": "Kyoto", "baseCurrency": "usd", **extra}, headers=headers)
    assert response.status_code == 201
    return response.json()


def add_expense(client, headers, trip_id, amount, participant_ids, **extra):
    response = client.post(
        f"/api/expenses/trip/{trip_id}",
        json={
            "description": "Ramen",
            "amount": amount,
            "currency": "USD",
            "fxRate": 1,
            "date": "2024-05-01",
            "participantIds": participant_ids,
            **extra,
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()


def test_create_trip_seeds_owner_and_milestone(client, users, auth_headers):
    alice = users[0]
    trip = create_trip(client, auth_headers(alice))

    assert trip["baseCurrency"] == "USD"
    assert trip["spendStatus"] == "OPEN"
    assert [(m["userId"], m["role"], m["rsvpStatus"]) for m in trip["members"]] == [
        (alice.id, "OWNER", "ACCEPTED")
    ]

    timeline = client.get(f"/api/trips/{trip['id']}/timeline", headers=auth_headers(alice)).json()
    assert [item["title"] for item in timeline] == ["Spending Window Closes"]


def test_invite_and_rsvp(client, users, auth_headers):
    alice, bob, _ = users
    trip = create_trip(client, auth_headers(alice))

    response = client.post(f"/api/trips/{trip['id']}/members", json={"username": "bob"}, headers=auth_headers(alice))
    assert response.status_code == 201
    assert response.json()["rsvpStatus"] == "PENDING"

    again = client.post(f"/api/trips/{trip['id']}/members", json={"username": "bob"}, headers=auth_headers(alice))
    assert again.status_code == 400

    response = client.put(
        f"/api/trips/{trip['id']}/rsvp", json={"rsvpStatus": "ACCEPTED"}, headers=auth_headers(bob)
    )
    assert response.status_code == 200
    assert response.json()["rsvpStatus"] == "ACCEPTED"

    # Members can't invite
    response = client.post(f"/api/trips/{trip['id']}/members", json={"username": "carol"}, headers=auth_headers(bob))
    assert response.status_code == 403


def test_non_member_cannot_see_trip(client, users, auth_headers):
    alice, _, carol = users
    trip = create_trip(client, auth_headers(alice))
    response = client.get(f"/api/trips/{trip['id']}", headers=auth_headers(carol))
    assert response.status_code == 403
    assert response.json() == {"detail": "Not a member of this trip"}


def test_balances_close_and_reopen(client, users, auth_headers):
    alice, bob, _ = users
    headers = auth_headers(alice)
    trip = create_trip(client, headers)
    client.post(f"/api/trips/{trip['id']}/members", json={"username": "bob"}, headers=headers)
    add_expense(client, headers, trip["id"], 100, [alice.id, bob.id])

    summary = client.get(f"/api/trips/{trip['id']}/balances", headers=headers).json()
    assert summary["totalSpent"] == 100.0
    assert {b["userId"]: b["netBalance"] for b in summary["balances"]} == {alice.id: 50.0, bob.id: -50.0}
    assert summary["settlements"] == [{
        "fromUserId": bob.id,
        "fromUserName": "Bob",
        "toUserId": alice.id,
        "toUserName": "Alice",
        "amount": 50.0,
        "oldestDebtDate": "2024-05-01",
    }]

    # Only organizers close spending
    response = client.post(f"/api/trips/{trip['id']}/spend-status", json={"action": "close"}, headers=auth_headers(bob))
    assert response.status_code == 403

    response = client.post(f"/api/trips/{trip['id']}/spend-status", json={"action": "close"}, headers=headers)
    assert response.status_code == 200
    body = response.json()
    assert body["spendStatus"] == "CLOSED"
    assert [(s["fromUserId"], s["toUserId"], s["amount"], s["status"]) for s in body["settlements"]] == [
        (bob.id, alice.id, 50.0, "PENDING")
    ]

    response = client.post(
        f"/api/expenses/trip/{trip['id']}",
        json={"amount": 5, "currency": "USD", "fxRate": 1},
        headers=headers,
    )
    assert response.status_code == 409

    listed = client.get(f"/api/trips/{trip['id']}/settlements", headers=auth_headers(bob)).json()
    assert len(listed) == 1
    assert listed[0]["remainingAmount"] == 50.0

    response = client.post(f"/api/trips/{trip['id']}/spend-status", json={"action": "open"}, headers=headers)
    assert response.json()["spendStatus"] == "OPEN"
    assert client.get(f"/api/trips/{trip['id']}/settlements", headers=headers).json() == []


def test_spend_status_unknown_trip(client, users, auth_headers):
    response = client.post("/api/trips/9999/spend-status", json={}, headers=auth_headers(users[0]))
    assert response.status_code == 404
    assert response.json() == {"detail": "Trip not found"}


def test_record_payment_endpoint(client, users, auth_headers):
    alice, bob, _ = users
    headers = auth_headers(alice)
    trip = create_trip(client, headers)
    client.post(f"/api/trips/{trip['id']}/members", json={"username": "bob"}, headers=headers)
    add_expense(client, headers, trip["id"], 30, [alice.id, bob.id])
    settlement = client.post(
        f"/api/trips/{trip['id']}/spend-status", json={"action": "close"}, headers=headers
    ).json()["settlements"][0]

    response = client.post(
        f"/api/settlements/{settlement['id']}/payments",
        json={"amount": 5, "paymentMethod": "cash"},
        headers=headers,
    )
    assert response.status_code == 200
    body = response.json()
    assert body["settlement"]["status"] == "PARTIALLY_PAID"
    assert body["settlement"]["remainingAmount"] == 10.0
    assert body["payment"]["recordedByName"] == "Alice"


def test_finalize_endpoint_reports_mismatch(client, users, auth_headers):
    alice = users[0]
    headers = auth_headers(alice)
    trip = create_trip(client, headers)
    expense = add_expense(client, headers, trip["id"], 80, [alice.id])
    expense = client.put(
        f"/api/expenses/{expense['id']}/assignments",
        json={"splitType": "EXACT", "assignments": [{"userId": alice.id, "shareAmount": 20}]},
        headers=headers,
    ).json()
    assert expense["assignedPercentage"] == 25.0

    response = client.post(f"/api/expenses/{expense['id']}/finalize", json={}, headers=headers)
    assert response.status_code == 400
    assert "25.0%" in response.json()["detail"]

    response = client.post(f"/api/expenses/{expense['id']}/finalize", json={"force": True}, headers=headers)
    assert response.status_code == 200
    assert response.json()["status"] == "CLOSED"
