"""
Integration tests for the REST API.

Uses httpx.AsyncClient against the FastAPI app with SQLite as the DB
backend.  The progression worker is disabled, so every transition here is
an explicit API call.
"""

import asyncio

import pytest

pytestmark = pytest.mark.asyncio


async def _create(client, body):
    resp = await client.post("/api/request", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def _drive_to_completed(client, request_id, notes="Replaced front left tire"):
    for action in ("accept", "advance", "advance"):
        resp = await client.post(f"/api/driver/requests/{request_id}/{action}", json={})
        assert resp.status_code == 200, resp.text
    resp = await client.post(
        f"/api/driver/requests/{request_id}/complete", json={"serviceNotes": notes}
    )
    assert resp.status_code == 200, resp.text
    return resp.json()


# ── Health ────────────────────────────────────────────────────────────


async def test_health(client):
    resp = await client.get("/api/admin/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok", "live_requests": 0}


async def test_list_providers(client):
    resp = await client.get("/api/providers")
    assert resp.status_code == 200
    names = [p["name"] for p in resp.json()]
    assert names == ["Sarah K.", "Mike J.", "Lena P.", "Omar B."]
    assert all(p["status"] == "available" for p in resp.json())


# ── Create ────────────────────────────────────────────────────────────


class TestCreateRequest:
    async def test_flat_tire_is_matched_and_priced(self, client, new_request):
        data = await _create(client, new_request(location="I-95 mile 12"))
        assert data["success"] is True
        assert data["status"] == "Requested"
        assert data["price"] == 75.00
        assert data["providerName"] == "Sarah K."
        assert data["eta"] == 15

        resp = await client.post(f"/api/driver/requests/{data['requestId']}/accept", json={})
        assert resp.status_code == 200
        assert resp.json()["status"] == "Accepted"

        status = (await client.get(f"/api/status/{data['requestId']}")).json()
        assert status == {
            "success": True,
            "status": "Accepted",
            "providerName": "Sarah K.",
            "eta": 15,
        }

    async def test_eta_quoted_from_coordinates(self, client, new_request):
        # Sarah sits at (40.71, -74.00); 0.1 degree north is ~11 km
        data = await _create(client, new_request(latitude=40.81, longitude=-74.00))
        assert data["eta"] == 17

    async def test_no_provider_for_type(self, client, new_request):
        resp = await client.post("/api/request", json=new_request(service_type="towing"))
        assert resp.status_code == 404
        assert resp.json()["success"] is False
        assert resp.json()["error"] == "no_provider_available"

        # nothing persisted
        assert (await client.get("/api/request/1")).status_code == 404
        health = (await client.get("/api/admin/health")).json()
        assert health["live_requests"] == 0

    async def test_roster_exhaustion(self, client, new_request):
        first = await _create(client, new_request(user_id=1))
        second = await _create(client, new_request(user_id=2))
        assert first["providerName"] == "Sarah K."
        assert second["providerName"] == "Mike J."

        resp = await client.post("/api/request", json=new_request(user_id=3))
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "overrides",
        [
            {"location": ""},
            {"location": "   "},
            {"serviceType": None},
            {"serviceType": "helicopter"},
            {"userId": None},
        ],
    )
    async def test_missing_or_bad_fields(self, client, new_request, overrides):
        body = new_request()
        body.update(overrides)
        resp = await client.post("/api/request", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    async def test_out_of_range_coordinates(self, client, new_request):
        resp = await client.post(
            "/api/request", json=new_request(latitude=100.0, longitude=0.0)
        )
        assert resp.status_code == 400
        assert resp.json()["success"] is False

    async def test_one_live_request_per_customer(self, client, new_request):
        await _create(client, new_request(user_id=5))
        resp = await client.post(
            "/api/request", json=new_request(user_id=5, service_type="locksmith")
        )
        assert resp.status_code == 409
        assert resp.json()["error"] == "active_request_exists"

    async def test_concurrent_submits_leave_one_live_request(
        self, file_client, new_request
    ):
        responses = await asyncio.gather(
            file_client.post("/api/request", json=new_request(user_id=7)),
            file_client.post("/api/request", json=new_request(user_id=7)),
        )
        assert sorted(r.status_code for r in responses) == [201, 409]
        refused = next(r for r in responses if r.status_code == 409)
        assert refused.json()["error"] == "active_request_exists"

        health = (await file_client.get("/api/admin/health")).json()
        assert health["live_requests"] == 1
        providers = (await file_client.get("/api/providers")).json()
        flat_tire = [p["status"] for p in providers if p["serviceType"] == "flat-tire"]
        assert flat_tire == ["busy", "available"]

    async def test_unknown_customer(self, client, new_request):
        resp = await client.post("/api/request", json=new_request(user_id=999))
        assert resp.status_code == 404
        assert resp.json()["error"] == "user_not_found"

        providers = (await client.get("/api/providers")).json()
        assert all(p["status"] == "available" for p in providers)


# ── Read ──────────────────────────────────────────────────────────────


class TestReadRequest:
    async def test_get_full_record(self, client, new_request):
        data = await _create(client, new_request(user_id=9, service_type="locksmith"))
        resp = await client.get(f"/api/request/{data['requestId']}")
        assert resp.status_code == 200
        record = resp.json()
        assert record["userId"] == 9
        assert record["serviceType"] == "locksmith"
        assert record["providerName"] == "Lena P."
        assert record["providerId"] is not None
        assert record["price"] == 150.00

    async def test_unknown_request(self, client):
        resp = await client.get("/api/status/999")
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"


# ── Lifecycle ─────────────────────────────────────────────────────────


class TestLifecycle:
    async def test_full_flow_to_paid(self, client, new_request):
        created = await _create(client, new_request())
        request_id = created["requestId"]

        completed = await _drive_to_completed(client, request_id)
        assert completed["status"] == "Completed"
        assert completed["serviceNotes"] == "Replaced front left tire"
        assert completed["eta"] is None

        live = (await client.get("/api/driver/requests")).json()
        assert [r["id"] for r in live] == [request_id]

        resp = await client.post(
            f"/api/payment/{request_id}", json={"paymentMethod": "card", "amount": 75.0}
        )
        assert resp.status_code == 200
        payment = resp.json()
        assert payment["status"] == "Paid"
        assert payment["amount"] == 75.0
        assert payment["transactionId"].startswith("TXN-")
        assert payment["message"] == "Payment of $75.00 received. Thank you!"

        assert (await client.get("/api/driver/requests")).json() == []

        record = (await client.get(f"/api/request/{request_id}")).json()
        assert record["price"] == created["price"]
        assert record["transactionId"] == payment["transactionId"]
        assert record["paymentDetails"]["method"] == "card"

    async def test_advance_is_one_step(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await client.post(f"/api/driver/requests/{request_id}/accept", json={})

        seen = []
        for _ in range(2):
            resp = await client.post(f"/api/driver/requests/{request_id}/advance", json={})
            seen.append(resp.json()["status"])
        assert seen == ["En Route", "Arrived"]

    async def test_en_route_shows_countdown(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await client.post(f"/api/driver/requests/{request_id}/accept", json={})
        await client.post(f"/api/driver/requests/{request_id}/advance", json={})

        status = (await client.get(f"/api/status/{request_id}")).json()
        assert status["status"] == "En Route"
        assert 1 <= status["eta"] <= 15

    async def test_completion_requires_notes(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        for action in ("accept", "advance", "advance"):
            await client.post(f"/api/driver/requests/{request_id}/{action}", json={})

        resp = await client.post(f"/api/driver/requests/{request_id}/advance", json={})
        assert resp.status_code == 409

        resp = await client.post(
            f"/api/driver/requests/{request_id}/complete", json={"serviceNotes": " "}
        )
        assert resp.status_code == 400

        status = (await client.get(f"/api/status/{request_id}")).json()
        assert status["status"] == "Arrived"

    async def test_advance_with_notes_completes(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        for action in ("accept", "advance", "advance"):
            await client.post(f"/api/driver/requests/{request_id}/{action}", json={})
        resp = await client.post(
            f"/api/driver/requests/{request_id}/advance",
            json={"serviceNotes": "Jump-started battery"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "Completed"

    async def test_cannot_accept_twice(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await client.post(f"/api/driver/requests/{request_id}/accept", json={})
        resp = await client.post(f"/api/driver/requests/{request_id}/accept", json={})
        assert resp.status_code == 409
        assert resp.json()["error"] == "invalid_transition"

    async def test_other_provider_cannot_act(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.post(
            f"/api/driver/requests/{request_id}/accept", json={"providerId": 2}
        )
        assert resp.status_code == 409

    async def test_driver_list_filtered_by_provider(self, client, new_request):
        await _create(client, new_request(user_id=1))
        await _create(client, new_request(user_id=2, service_type="locksmith"))

        providers = {p["name"]: p["id"] for p in (await client.get("/api/providers")).json()}
        resp = await client.get(
            "/api/driver/requests", params={"providerId": providers["Lena P."]}
        )
        jobs = resp.json()
        assert len(jobs) == 1
        assert jobs[0]["serviceType"] == "locksmith"


class TestStatusWrite:
    async def test_put_one_step(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.put(
            f"/api/request/{request_id}/status", json={"status": "Accepted"}
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "Accepted"

    @pytest.mark.parametrize("target", ["Arrived", "Completed", "En Route"])
    async def test_put_skip_rejected(self, client, new_request, target):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.put(f"/api/request/{request_id}/status", json={"status": target})
        assert resp.status_code == 409
        status = (await client.get(f"/api/status/{request_id}")).json()
        assert status["status"] == "Requested"

    async def test_put_unknown_status(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.put(f"/api/request/{request_id}/status", json={"status": "Teleported"})
        assert resp.status_code == 400

    async def test_put_paid_rejected(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await _drive_to_completed(client, request_id)
        resp = await client.put(f"/api/request/{request_id}/status", json={"status": "Paid"})
        assert resp.status_code == 409

    async def test_put_cancelled_cancels(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.put(f"/api/request/{request_id}/status", json={"status": "Cancelled"})
        assert resp.status_code == 200
        assert resp.json()["status"] == "Cancelled"
        assert resp.json()["cancelledBy"] == "provider"

    async def test_put_cancelled_records_actor(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.put(
            f"/api/request/{request_id}/status",
            json={"status": "Cancelled", "actor": "customer"},
        )
        assert resp.status_code == 200
        assert resp.json()["cancelledBy"] == "customer"

    async def test_put_unknown_actor(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.put(
            f"/api/request/{request_id}/status",
            json={"status": "Cancelled", "actor": "tow-truck"},
        )
        assert resp.status_code == 400
        status = (await client.get(f"/api/status/{request_id}")).json()
        assert status["status"] == "Requested"


# ── Cancel ────────────────────────────────────────────────────────────


class TestCancel:
    async def test_cancel_releases_provider(self, client, new_request):
        request_id = (await _create(client, new_request(user_id=1)))["requestId"]
        resp = await client.post(f"/api/request/{request_id}/cancel")
        assert resp.status_code == 200
        assert resp.json()["status"] == "Cancelled"
        assert resp.json()["cancelledBy"] == "customer"

        # Sarah is free again and the customer may request anew
        again = await _create(client, new_request(user_id=1))
        assert again["providerName"] == "Sarah K."

    async def test_cancel_is_idempotent(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        first = (await client.post(f"/api/request/{request_id}/cancel")).json()
        resp = await client.post(
            f"/api/request/{request_id}/cancel", json={"actor": "provider"}
        )
        assert resp.status_code == 200
        # SQLite drops the UTC offset on reload; compare to the second
        assert resp.json()["cancelledAt"][:19] == first["cancelledAt"][:19]
        assert resp.json()["cancelledBy"] == "customer"

    async def test_cancel_en_route(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await client.post(f"/api/driver/requests/{request_id}/accept", json={})
        await client.post(f"/api/driver/requests/{request_id}/advance", json={})
        resp = await client.post(f"/api/request/{request_id}/cancel", json={"actor": "provider"})
        assert resp.json()["status"] == "Cancelled"
        assert resp.json()["eta"] is None
        assert (await client.get("/api/driver/requests")).json() == []

    async def test_cannot_cancel_completed(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await _drive_to_completed(client, request_id)
        resp = await client.post(f"/api/request/{request_id}/cancel")
        assert resp.status_code == 409

    async def test_cancel_unknown(self, client):
        resp = await client.post("/api/request/42/cancel")
        assert resp.status_code == 404


# ── Payment ───────────────────────────────────────────────────────────


class TestPayment:
    async def test_payment_before_completion(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.post(
            f"/api/payment/{request_id}", json={"paymentMethod": "card", "amount": 75.0}
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "payment_not_allowed"

        status = (await client.get(f"/api/status/{request_id}")).json()
        assert status["status"] == "Requested"

    async def test_wrong_amount(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await _drive_to_completed(client, request_id)
        resp = await client.post(
            f"/api/payment/{request_id}", json={"paymentMethod": "card", "amount": 70.0}
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "validation_error"

    async def test_unsupported_method(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await _drive_to_completed(client, request_id)
        resp = await client.post(f"/api/payment/{request_id}", json={"paymentMethod": "barter"})
        assert resp.status_code == 400

    async def test_insurance_copay(self, client, new_request):
        request_id = (await _create(client, new_request(service_type="locksmith")))["requestId"]
        await _drive_to_completed(client, request_id, notes="Opened driver door")
        resp = await client.post(
            f"/api/payment/{request_id}",
            json={"paymentMethod": "wallet", "amount": 25.0, "insuranceCopay": True},
        )
        assert resp.status_code == 200
        assert resp.json()["amount"] == 25.0

        record = (await client.get(f"/api/request/{request_id}")).json()
        assert record["price"] == 150.0

    async def test_pay_twice(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await _drive_to_completed(client, request_id)
        body = {"paymentMethod": "cash"}
        assert (await client.post(f"/api/payment/{request_id}", json=body)).status_code == 200
        resp = await client.post(f"/api/payment/{request_id}", json=body)
        assert resp.status_code == 400


# ── Providers & feedback ──────────────────────────────────────────────


class TestProviders:
    async def test_offline_provider_is_not_matched(self, client, new_request):
        providers = {p["name"]: p["id"] for p in (await client.get("/api/providers")).json()}
        resp = await client.put(
            f"/api/driver/{providers['Lena P.']}/availability", json={"online": False}
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "offline"

        resp = await client.post("/api/request", json=new_request(service_type="locksmith"))
        assert resp.status_code == 404

        await client.put(f"/api/driver/{providers['Lena P.']}/availability", json={"online": True})
        data = await _create(client, new_request(service_type="locksmith"))
        assert data["providerName"] == "Lena P."

    async def test_busy_provider_cannot_go_offline(self, client, new_request):
        await _create(client, new_request())
        resp = await client.put("/api/driver/1/availability", json={"online": False})
        assert resp.status_code == 409

    async def test_unknown_provider(self, client):
        resp = await client.put("/api/driver/99/availability", json={"online": True})
        assert resp.status_code == 404
        assert resp.json()["error"] == "provider_not_found"


class TestFeedback:
    async def test_feedback_after_completion(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        await _drive_to_completed(client, request_id)
        resp = await client.post(
            "/api/feedback",
            json={
                "requestId": request_id,
                "feedbackType": "customer_to_driver",
                "rating": 5,
                "comments": "Quick and friendly",
            },
        )
        assert resp.status_code == 201
        assert resp.json()["feedbackId"] >= 1

    async def test_feedback_before_completion(self, client, new_request):
        request_id = (await _create(client, new_request()))["requestId"]
        resp = await client.post(
            "/api/feedback",
            json={"requestId": request_id, "feedbackType": "customer_to_driver", "rating": 4},
        )
        assert resp.status_code == 409

    async def test_rating_range(self, client):
        resp = await client.post(
            "/api/feedback",
            json={"requestId": 1, "feedbackType": "driver_to_customer", "rating": 9},
        )
        assert resp.status_code == 400
