"""
Tests for student, points and ledger endpoints.

These test the HTTP layer: status codes, response format and
error mapping. Business rules are tested in tests/services.
"""


def enroll(client, email="anna@college.test"):
    response = client.post("/students", json={
        "full_name": "Anna Petrova",
        "email": email,
        "group_name": "IS-21",
    })
    return response.json()["id"]


def adjust(client, student_id, amount, key):
    return client.post(f"/students/{student_id}/adjustments", json={
        "amount": amount,
        "description": "Olympiad bonus",
        "idempotency_key": key,
    })


class TestStudents:

    def test_enroll_returns_201(self, client):
        response = client.post("/students", json={
            "full_name": "Anna Petrova",
            "email": "anna@college.test",
        })
        assert response.status_code == 201
        assert response.json()["full_name"] == "Anna Petrova"

    def test_duplicate_email_returns_400(self, client):
        enroll(client)
        response = client.post("/students", json={
            "full_name": "Other",
            "email": "anna@college.test",
        })
        assert response.status_code == 400

    def test_unknown_student_returns_404(self, client):
        assert client.get("/students/999").status_code == 404
        assert client.get("/students/999/points").status_code == 404
        assert client.get("/students/999/transactions").status_code == 404


class TestPoints:

    def test_new_student_has_zero_points(self, client):
        student_id = enroll(client)

        data = client.get(f"/students/{student_id}/points").json()

        assert data == {
            "student_id": student_id,
            "total_points": 0,
            "earned_today": 0,
        }

    def test_adjustment_updates_points_card(self, client):
        student_id = enroll(client)

        response = adjust(client, student_id, 30, "adj-1")
        data = client.get(f"/students/{student_id}/points").json()

        assert response.status_code == 201
        assert response.json()["source_kind"] == "manual_adjustment"
        assert data["total_points"] == 30
        assert data["earned_today"] == 30

    def test_repeated_adjustment_is_idempotent(self, client):
        student_id = enroll(client)

        first = adjust(client, student_id, 30, "adj-1").json()
        second = adjust(client, student_id, 30, "adj-1").json()

        assert first["id"] == second["id"]
        points = client.get(f"/students/{student_id}/points").json()
        assert points["total_points"] == 30

    def test_overdraft_adjustment_returns_409(self, client):
        student_id = enroll(client)

        response = adjust(client, student_id, -5, "adj-1")

        assert response.status_code == 409
        assert "Insufficient balance" in response.json()["detail"]

    def test_zero_adjustment_returns_422(self, client):
        student_id = enroll(client)
        assert adjust(client, student_id, 0, "adj-1").status_code == 422

    def test_integrity_check(self, client):
        student_id = enroll(client)
        adjust(client, student_id, 30, "adj-1")

        data = client.get(f"/students/{student_id}/points/integrity").json()

        assert data["is_consistent"] is True
        assert data["computed"] == 30


class TestHistory:

    def test_history_page(self, client):
        student_id = enroll(client)
        for i in range(3):
            adjust(client, student_id, i + 1, f"adj-{i}")

        data = client.get(
            f"/students/{student_id}/transactions", params={"limit": 2}
        ).json()

        assert data["limit"] == 2
        assert [t["amount"] for t in data["transactions"]] == [3, 2]

    def test_invalid_limit_returns_422(self, client):
        student_id = enroll(client)
        response = client.get(
            f"/students/{student_id}/transactions", params={"limit": 0}
        )
        assert response.status_code == 422


class TestReversal:

    def test_reverse_returns_offsetting_transaction(self, client):
        student_id = enroll(client)
        txn = adjust(client, student_id, 30, "adj-1").json()

        response = client.post(
            f"/transactions/{txn['id']}/reverse", json={"reason": "Typo"}
        )

        assert response.status_code == 201
        assert response.json()["amount"] == -30
        assert response.json()["reverses_transaction_id"] == txn["id"]
        points = client.get(f"/students/{student_id}/points").json()
        assert points["total_points"] == 0

    def test_reverse_unknown_returns_404(self, client):
        response = client.post("/transactions/999/reverse", json={})
        assert response.status_code == 404

    def test_get_transaction(self, client):
        student_id = enroll(client)
        txn = adjust(client, student_id, 30, "adj-1").json()

        response = client.get(f"/transactions/{txn['id']}")

        assert response.status_code == 200
        assert response.json()["source_event_id"] == "adj-1"


class TestAuditTrail:

    def test_lists_student_events(self, client):
        student_id = enroll(client)
        other_id = enroll(client, email="boris@college.test")
        txn = adjust(client, student_id, 30, "adj-1").json()
        client.post(f"/transactions/{txn['id']}/reverse", json={})
        adjust(client, other_id, 30, "adj-1")

        events = client.get(f"/students/{student_id}/audit").json()

        assert [e["event_type"] for e in events] == ["transaction_reversed"]
        assert events[0]["student_id"] == student_id

    def test_filter_by_event_type(self, client):
        student_id = enroll(client)
        txn = adjust(client, student_id, 30, "adj-1").json()
        client.post(f"/transactions/{txn['id']}/reverse", json={})

        response = client.get(
            f"/students/{student_id}/audit",
            params={"event_type": "purchase_rejected"},
        )

        assert response.status_code == 200
        assert response.json() == []

    def test_unknown_student_returns_404(self, client):
        response = client.get("/students/999/audit")
        assert response.status_code == 404
