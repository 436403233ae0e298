from datetime import datetime

import pytest

from .helpers import CUSTOMER_DETAILS, FAR_FROM_SHOP, NEAR_SHOP, juice, shake


@pytest.fixture
def customer(make_user):
    return make_user(wallet=20)


@pytest.fixture
def chef(make_user):
    return make_user(role="chef")


@pytest.fixture
def courier(make_user):
    return make_user(role="delivery")


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


def quicksip_payload(**overrides):
    payload = {
        "customerDetails": CUSTOMER_DETAILS,
        "location": NEAR_SHOP,
        "items": [juice(price=60, quantity=2, fibre=True)],
        "timeSlot": "3-4 PM",
    }
    payload.update(overrides)
    return payload


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_time_slots(client):
    catalog = client.get("/time-slots").json()
    assert [s["range"] for s in catalog][:2] == ["7-8 AM", "8-9 AM"]
    assert len(catalog) == 8

    available = client.get("/time-slots/available", params={"date": "2024-01-10"}).json()
    assert [s["id"] for s in available["slots"]] == ["4", "5", "6", "7", "8"]
    tomorrow = client.get("/time-slots/available", params={"date": "2024-01-11"}).json()
    assert len(tomorrow["slots"]) == 8


def test_available_slots_after_cutoff(client, clock):
    clock.instant = datetime(2024, 1, 10, 18, 0)
    assert client.get("/time-slots/available").json()["slots"] == []


def test_delivery_quote(client):
    response = client.post("/delivery/quote", json={**NEAR_SHOP, "subtotal": 120})
    assert response.status_code == 200
    assert response.json() == {
        "distanceKm": 4.0,
        "serviceable": True,
        "calculatedCharge": 35,
        "appliedCharge": 0,
        "freeDelivery": True,
        "freeDeliveryThreshold": 99,
    }


def test_delivery_quote_out_of_range(client):
    response = client.post("/delivery/quote", json={**FAR_FROM_SHOP, "subtotal": 120})
    assert response.status_code == 422
    body = response.json()
    assert body["error"] == "out_of_service_range"
    assert body["maxRangeKm"] == 5
    assert body["distanceKm"] > 5


def test_delivery_settings_admin_only(client, auth_headers, customer, admin):
    settings = {"maxRangeKm": 8, "tiers": [{"upToKm": 8, "charge": 50}, {"upToKm": 3, "charge": 20}]}

    assert client.put("/delivery/settings", json=settings, headers=auth_headers(customer)).status_code == 403

    response = client.put("/delivery/settings", json=settings, headers=auth_headers(admin))
    assert response.status_code == 200
    assert [t["upToKm"] for t in response.json()["tiers"]] == [3, 8]
    assert client.get("/delivery/settings").json()["maxRangeKm"] == 8

    bad = {"maxRangeKm": 9, "tiers": [{"upToKm": 8, "charge": 50}]}
    response = client.put("/delivery/settings", json=bad, headers=auth_headers(admin))
    assert response.status_code == 400
    assert response.json()["error"] == "invalid_request"


def test_requests_need_a_token(client):
    assert client.get("/orders").status_code in (401, 403)
    response = client.get("/orders", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


# ---------------------------------------------------------------- QuickSip lifecycle


def test_quicksip_order_through_delivery(client, auth_headers, customer, chef, courier, sent_emails):
    response = client.post(
        "/orders/quicksip", json=quicksip_payload(walletAmount=20), headers=auth_headers(customer)
    )
    assert response.status_code == 201
    order = response.json()
    assert order["orderType"] == "quicksip"
    assert order["subtotalAmount"] == 120
    assert order["deliveryCharge"] == 0
    assert order["calculatedDeliveryCharge"] == 35
    assert order["walletAmountUsed"] == 20
    assert order["totalAmount"] == 100
    assert order["deliveryDate"] == "2024-01-10"
    assert order["customerDetails"]["phone"] == "+919876543210"
    assert order["items"][0]["customization"]["fibre"] is True
    assert sent_emails == [{"to": customer.email, "subject": "Your SipDesk order is confirmed"}]
    assert client.get("/wallet", headers=auth_headers(customer)).json()["currentBalance"] == 0

    unit = {"orderId": order["id"]}
    early_pick = client.post(
        "/delivery/units/status", json={**unit, "status": "picked"}, headers=auth_headers(courier)
    )
    assert early_pick.status_code == 409
    assert early_pick.json()["error"] == "invalid_state_transition"

    received = client.post("/chef/units/status", json={**unit, "status": "received"}, headers=auth_headers(chef))
    assert received.json()["changed"] is True
    assert received.json()["unit"]["orderStatus"] == "accepted"
    again = client.post("/chef/units/status", json={**unit, "status": "received"}, headers=auth_headers(chef))
    assert again.status_code == 200
    assert again.json()["changed"] is False

    client.post("/chef/units/status", json={**unit, "status": "done"}, headers=auth_headers(chef))
    queue = client.get("/delivery/queue", headers=auth_headers(courier)).json()
    assert [u["orderId"] for u in queue["readyToPick"]] == [order["id"]]

    picked = client.post("/delivery/units/status", json={**unit, "status": "picked"}, headers=auth_headers(courier))
    assert picked.json()["unit"]["orderStatus"] == "out-for-delivery"
    delivered = client.post(
        "/delivery/units/status",
        json={**unit, "status": "delivered", "clientTime": "2024-01-10T09:00:00"},
        headers=auth_headers(courier),
    )
    assert delivered.json()["unit"]["deliveredTime"] == "2024-01-10T09:30:00"

    final = client.get(f"/orders/{order['id']}", headers=auth_headers(customer)).json()
    assert final["status"] == "delivered"
    assert final["units"][0]["courierStatus"] == "delivered"

    after = client.post(
        "/delivery/units/status",
        json={**unit, "status": "not-delivered", "reason": "oops"},
        headers=auth_headers(courier),
    )
    assert after.status_code == 409


def test_staff_roles_are_enforced(client, auth_headers, customer, courier):
    order = client.post("/orders/quicksip", json=quicksip_payload(), headers=auth_headers(customer)).json()
    unit = {"orderId": order["id"], "status": "received"}
    assert client.post("/chef/units/status", json=unit, headers=auth_headers(customer)).status_code == 403
    assert client.post("/chef/units/status", json=unit, headers=auth_headers(courier)).status_code == 403
    cancel = {"orderId": order["id"], "reason": "Changed mind"}
    assert client.post("/orders/cancel", json=cancel, headers=auth_headers(customer)).status_code == 403


def test_customers_only_see_their_orders(client, auth_headers, customer, make_user):
    order = client.post("/orders/quicksip", json=quicksip_payload(), headers=auth_headers(customer)).json()
    stranger = make_user()
    assert client.get(f"/orders/{order['id']}", headers=auth_headers(stranger)).status_code == 404
    assert client.get("/orders", headers=auth_headers(stranger)).json() == []
    assert len(client.get("/orders", headers=auth_headers(customer)).json()) == 1


@pytest.mark.parametrize(
    "overrides, status, error",
    [
        ({"timeSlot": "7-8 AM"}, 400, "invalid_request"),
        ({"location": FAR_FROM_SHOP}, 422, "out_of_service_range"),
        ({"walletAmount": 21}, 422, "insufficient_balance"),
    ],
)
def test_quicksip_rejections(client, auth_headers, customer, overrides, status, error):
    response = client.post("/orders/quicksip", json=quicksip_payload(**overrides), headers=auth_headers(customer))
    assert response.status_code == status
    assert response.json()["error"] == error
    assert client.get("/orders", headers=auth_headers(customer)).json() == []
    assert client.get("/wallet", headers=auth_headers(customer)).json()["currentBalance"] == 20


@pytest.mark.parametrize(
    "overrides",
    [
        {"customerDetails": {**CUSTOMER_DETAILS, "phone": "12345"}},
        {"customerDetails": {**CUSTOMER_DETAILS, "name": "  "}},
        {"items": []},
        {"items": [{**juice(), "customization": {"category": "tea"}}]},
        {"items": [{**shake(), "customization": {"category": "shake", "size": "Jumbo", "quantity": "250mL"}}]},
    ],
    ids=["phone", "blank-name", "no-items", "unknown-category", "size-volume-mismatch"],
)
def test_quicksip_payload_validation(client, auth_headers, customer, overrides):
    response = client.post("/orders/quicksip", json=quicksip_payload(**overrides), headers=auth_headers(customer))
    assert response.status_code == 422


def test_after_cutoff_no_quicksip(client, auth_headers, customer, clock):
    clock.instant = datetime(2024, 1, 10, 18, 5)
    response = client.post(
        "/orders/quicksip", json=quicksip_payload(timeSlot="6-7 PM"), headers=auth_headers(customer)
    )
    assert response.status_code == 400


def test_admin_lists_every_customers_orders(client, auth_headers, customer, make_user, admin, chef):
    other = make_user()
    quick = client.post("/orders/quicksip", json=quicksip_payload(), headers=auth_headers(customer)).json()
    plan = client.post("/plans", json=plan_payload(), headers=auth_headers(other)).json()
    fresh = client.post(
        f"/plans/{plan['id']}/checkout",
        json={"customerDetails": CUSTOMER_DETAILS, "location": NEAR_SHOP},
        headers=auth_headers(other),
    ).json()

    everything = client.get("/admin/orders", headers=auth_headers(admin)).json()
    assert {o["id"] for o in everything} == {quick["id"], fresh["id"]}

    by_type = client.get("/admin/orders", params={"orderType": "freshplan"}, headers=auth_headers(admin)).json()
    assert [o["id"] for o in by_type] == [fresh["id"]]
    by_day = client.get("/admin/orders", params={"date": "2024-01-12"}, headers=auth_headers(admin)).json()
    assert [o["id"] for o in by_day] == [fresh["id"]]
    today = client.get("/admin/orders", params={"date": "2024-01-10"}, headers=auth_headers(admin)).json()
    assert [o["id"] for o in today] == [quick["id"]]

    assert client.get("/admin/orders", headers=auth_headers(customer)).status_code == 403
    assert client.get("/admin/orders", headers=auth_headers(chef)).status_code == 403


# ---------------------------------------------------------------- cancellation


def test_chef_cancels_and_wallet_is_refunded(client, auth_headers, customer, chef, admin, sent_emails):
    order = client.post(
        "/orders/quicksip", json=quicksip_payload(walletAmount=20), headers=auth_headers(customer)
    ).json()

    response = client.post(
        "/orders/cancel", json={"orderId": order["id"], "reason": "Out of oranges"}, headers=auth_headers(chef)
    )
    assert response.status_code == 200
    assert response.json()["refundedAmount"] == 20
    assert response.json()["unit"]["status"] == "cancelled"
    assert client.get("/wallet", headers=auth_headers(customer)).json()["currentBalance"] == 20
    assert sent_emails[-1]["subject"] == "Delivery for 10 Jan 2024 cancelled"

    retry = client.post(
        "/orders/cancel", json={"orderId": order["id"], "reason": "Out of oranges"}, headers=auth_headers(admin)
    )
    assert retry.json()["changed"] is False
    assert retry.json()["refundedAmount"] == 0
    assert client.get("/wallet", headers=auth_headers(customer)).json()["currentBalance"] == 20


def test_started_order_needs_admin_force(client, auth_headers, customer, chef, admin):
    order = client.post("/orders/quicksip", json=quicksip_payload(), headers=auth_headers(customer)).json()
    client.post("/chef/units/status", json={"orderId": order["id"], "status": "received"}, headers=auth_headers(chef))

    cancel = {"orderId": order["id"], "reason": "Blender broke"}
    assert client.post("/orders/cancel", json=cancel, headers=auth_headers(chef)).status_code == 409
    forced = client.post("/orders/cancel", json={**cancel, "force": True}, headers=auth_headers(admin))
    assert forced.status_code == 200
    assert forced.json()["unit"]["orderStatus"] == "cancelled"


# ---------------------------------------------------------------- FreshPlan lifecycle


def plan_payload(start="2024-01-11", days=3):
    return {
        "startDate": start,
        "days": days,
        "schedule": [
            {"date": "2024-01-11", "timeSlot": "7-8 AM", "items": [juice(price=120)]},
            {"date": "2024-01-12", "timeSlot": "8-9 AM", "items": [shake(price=90, dilution="Concentrated")]},
            {"date": "2024-01-13", "timeSlot": "6-7 PM", "items": [juice(price=60), shake(price=80)]},
        ],
    }


def test_freshplan_lifecycle(client, auth_headers, customer, chef, clock):
    headers = auth_headers(customer)
    assert client.get("/plans/earliest-start", headers=headers).json() == {
        "earliestStartDate": "2024-01-10",
        "activePlanEndDate": None,
    }

    plan = client.post("/plans", json=plan_payload(), headers=headers)
    assert plan.status_code == 201
    plan = plan.json()
    assert plan["endDate"] == "2024-01-13"

    checkout = client.post(
        f"/plans/{plan['id']}/checkout",
        json={"customerDetails": CUSTOMER_DETAILS, "location": NEAR_SHOP},
        headers=headers,
    )
    assert checkout.status_code == 200
    order = checkout.json()
    assert order["orderType"] == "freshplan"
    assert [u["scheduledDate"] for u in order["units"]] == ["2024-01-11", "2024-01-12", "2024-01-13"]
    assert order["deliveryCharge"] == 35

    # Unpaid plans stay off the kitchen queue
    clock.instant = datetime(2024, 1, 11, 6, 0)
    assert client.get("/chef/queue", headers=auth_headers(chef)).json()["pending"] == []

    paid = client.post(f"/plans/{plan['id']}/payment-complete", headers=headers)
    assert paid.json()["paymentComplete"] is True
    queue = client.get("/chef/queue", headers=auth_headers(chef)).json()
    assert [u["dayId"] for u in queue["pending"]] == [order["units"][0]["dayId"]]

    assert client.get("/plans/earliest-start", headers=headers).json()["earliestStartDate"] == "2024-01-14"
    conflict = client.post("/plans", json={"startDate": "2024-01-12", "days": 3}, headers=headers)
    assert conflict.status_code == 409
    assert conflict.json() == {
        "error": "start_date_conflict",
        "detail": "Plan cannot start before 2024-01-14",
        "earliestStartDate": "2024-01-14",
    }

    duration = client.post("/plans", json={"startDate": "2024-01-20", "days": 31}, headers=headers)
    assert duration.status_code == 422
    assert duration.json()["error"] == "invalid_duration"


def test_reschedule_tomorrow_until_cutoff(client, auth_headers, customer, clock):
    headers = auth_headers(customer)
    plan = client.post("/plans", json=plan_payload(), headers=headers).json()
    order = client.post(
        f"/plans/{plan['id']}/checkout",
        json={"customerDetails": CUSTOMER_DETAILS, "location": NEAR_SHOP},
        headers=headers,
    ).json()
    first_day = order["units"][0]["dayId"]
    path = f"/plans/orders/{order['id']}/days/{first_day}"

    clock.instant = datetime(2024, 1, 10, 23, 58)
    assert client.get(f"{path}/editability", headers=headers).json()["editable"] is True
    edited = client.put(f"{path}/time-slot", json={"timeSlot": "5-6 PM"}, headers=headers)
    assert edited.status_code == 200
    assert edited.json()["units"][0]["timeSlot"] == "5-6 PM"

    clock.instant = datetime(2024, 1, 11, 0, 1)
    locked = client.put(f"{path}/time-slot", json={"timeSlot": "6-7 PM"}, headers=headers)
    assert locked.status_code == 423
    body = locked.json()
    assert body["error"] == "schedule_locked"
    assert body["lockedAt"] == "2024-01-10T23:59:00"


def test_edit_unpaid_plan_over_http(client, auth_headers, customer):
    headers = auth_headers(customer)
    plan = client.post("/plans", json=plan_payload(), headers=headers).json()

    moved = {
        "startDate": "2024-01-15",
        "days": 3,
        "schedule": [{"date": "2024-01-16", "timeSlot": "4-5 PM", "items": [juice(price=120)]}],
    }
    response = client.put(f"/plans/{plan['id']}", json=moved, headers=headers)
    assert response.status_code == 200
    assert response.json()["endDate"] == "2024-01-17"
    assert [d["date"] for d in response.json()["schedule"]] == ["2024-01-16"]

    client.post(f"/plans/{plan['id']}/payment-complete", headers=headers)
    frozen = client.put(f"/plans/{plan['id']}", json=moved, headers=headers)
    assert frozen.status_code == 409
    assert frozen.json()["error"] == "invalid_state_transition"


def test_delete_unpaid_plan(client, auth_headers, customer):
    headers = auth_headers(customer)
    plan = client.post("/plans", json={"startDate": "2024-01-11", "days": 3}, headers=headers).json()
    assert client.delete(f"/plans/{plan['id']}", headers=headers).status_code == 204
    assert client.get("/plans", headers=headers).json() == []


# ---------------------------------------------------------------- wallet


def test_withdrawal_rejection_over_http(client, auth_headers, make_user, admin, sent_emails):
    user = make_user(wallet=150)
    headers = auth_headers(user)

    created = client.post("/wallet/withdrawals", json={"amount": 120, "upiId": "asha@okbank"}, headers=headers)
    assert created.status_code == 201
    withdrawal_id = created.json()["id"]
    assert client.get("/wallet", headers=headers).json()["currentBalance"] == 30

    path = f"/admin/withdrawals/{withdrawal_id}/status"
    assert client.post(path, json={"status": "rejected"}, headers=headers).status_code == 403

    for _ in range(2):
        response = client.post(path, json={"status": "rejected", "transferNote": "UPI closed"}, headers=auth_headers(admin))
        assert response.status_code == 200
        assert response.json()["status"] == "rejected"
        assert response.json()["processedAt"] == "2024-01-10T09:30:00"
    assert client.get("/wallet", headers=headers).json()["currentBalance"] == 150
    # request + one rejection; the retry sends nothing
    assert [e["subject"] for e in sent_emails] == ["Withdrawal request received", "Withdrawal rejected"]

    flip = client.post(path, json={"status": "approved"}, headers=auth_headers(admin))
    assert flip.status_code == 409

    pending = client.get("/admin/withdrawals", params={"status": "pending"}, headers=auth_headers(admin)).json()
    assert pending == []


def test_withdrawal_over_balance(client, auth_headers, customer):
    response = client.post(
        "/wallet/withdrawals", json={"amount": 21, "upiId": "asha@okbank"}, headers=auth_headers(customer)
    )
    assert response.status_code == 422
    assert response.json() == {"error": "insufficient_balance", "detail": "Insufficient referral wallet balance"}


def test_email_failures_do_not_fail_requests(client, auth_headers, customer, monkeypatch):
    from sipdesk import email_service

    async def failing_send(**kwargs):
        raise RuntimeError("resend down")

    monkeypatch.setattr(email_service, "send_email", failing_send)
    response = client.post("/orders/quicksip", json=quicksip_payload(), headers=auth_headers(customer))
    assert response.status_code == 201
