from datetime import timedelta

from cafe_loyalty.timeutils import utcnow

from conftest import TENANT


HEADERS = {"X-Tenant": TENANT}


def _create_account(client, user_id="user-1"):
    resp = client.post("/accounts", json={"userId": user_id}, headers=HEADERS)
    assert resp.status_code == 200, resp.text
    return resp.json()


def _order(client, order_id="o-1", total="50.00", customer="user-1"):
    return client.post(
        "/events/order-completed",
        json={"id": order_id, "tenantId": TENANT, "customerId": customer, "totalAmount": total},
    )


def test_root(client):
    assert client.get("/").json() == {"message": "Cafe Loyalty Engine is running"}


def test_tenant_context_is_required(client):
    resp = client.post("/accounts", json={"userId": "user-1"})

    assert resp.status_code == 400
    assert "tenant" in resp.json()["detail"].lower()


def test_create_and_read_account(client):
    account = _create_account(client)

    assert account["current_points"] == 100
    by_number = client.get(f"/accounts/by-number/{account['loyalty_number']}", headers=HEADERS).json()
    by_user = client.get("/accounts/by-user/user-1", headers=HEADERS).json()
    assert by_number["id"] == by_user["id"] == account["id"]
    assert client.get(f"/accounts/{account['id']}", headers={"X-Tenant": "cafe-2"}).status_code == 404


def test_order_completed_is_idempotent(client):
    first = _order(client)
    again = _order(client)

    assert first.status_code == 200, first.text
    assert first.json()["points"] == 50
    assert first.json()["metadata"]["type"] == "ORDER_EARN"
    assert again.json()["id"] == first.json()["id"]

    account = client.get("/accounts/by-user/user-1", headers=HEADERS).json()
    assert account["current_points"] == 150
    history = client.get(f"/accounts/{account['id']}/transactions", headers=HEADERS).json()
    assert sorted(t["kind"] for t in history) == ["BONUS", "EARNED"]
    check = client.get(f"/accounts/{account['id']}/balance-check", headers=HEADERS).json()
    assert check["consistent"] is True


def test_negative_order_total_is_rejected(client):
    assert _order(client, total="-1").status_code == 422


def test_redemption_flow_over_http(client):
    account = _create_account(client)
    reward = client.post("/admin/rewards", json={"name": "Latte", "points_cost": 60}, headers=HEADERS).json()

    available = client.get(f"/accounts/{account['id']}/rewards/available", headers=HEADERS).json()
    assert [r["id"] for r in available] == [reward["id"]]

    redemption = client.post(
        "/events/redemption-requested",
        json={"accountId": account["id"], "rewardId": reward["id"]},
    ).json()
    assert redemption["status"] == "APPROVED"

    done = client.post(f"/redemptions/{redemption['id']}/complete", headers=HEADERS).json()
    assert done["status"] == "REDEEMED"

    rejected = client.post(
        "/events/redemption-requested",
        json={"accountId": account["id"], "rewardId": reward["id"]},
    )
    assert rejected.status_code == 422
    assert rejected.json()["code"] == "INSUFFICIENT_BALANCE"


def test_deny_over_http_refunds(client):
    account = _create_account(client)
    reward = client.post(
        "/admin/rewards",
        json={"name": "Cake", "points_cost": 40, "requires_approval": True},
        headers=HEADERS,
    ).json()
    redemption = client.post(
        "/events/redemption-requested",
        json={"accountId": account["id"], "rewardId": reward["id"]},
    ).json()

    denied = client.post(f"/redemptions/{redemption['id']}/deny", json={"reason": "no stock"}, headers=HEADERS)

    assert denied.json()["status"] == "DENIED"
    assert client.get(f"/accounts/{account['id']}", headers=HEADERS).json()["current_points"] == 100


def test_unknown_account_maps_to_404(client):
    resp = client.post(
        "/events/redemption-requested",
        json={"accountId": "00000000-0000-0000-0000-000000000000", "rewardId": "00000000-0000-0000-0000-000000000000"},
    )

    assert resp.status_code == 404
    assert resp.json()["code"] == "NOT_FOUND"


def test_tier_admin_validates_ordering(client):
    ok = client.post("/admin/loyalty-tiers", json={"name": "Bronze", "level": 1}, headers=HEADERS)
    silver = client.post(
        "/admin/loyalty-tiers",
        json={"name": "Silver", "level": 2, "points_required": 500, "points_multiplier": "1.25"},
        headers=HEADERS,
    )
    duplicate = client.post("/admin/loyalty-tiers", json={"name": "Again", "level": 2}, headers=HEADERS)
    inverted = client.post(
        "/admin/loyalty-tiers",
        json={"name": "Gold", "level": 3, "points_required": 100},
        headers=HEADERS,
    )

    assert ok.status_code == 200
    assert silver.status_code == 200
    assert duplicate.status_code == 400
    assert inverted.status_code == 400
    levels = [t["level"] for t in client.get("/admin/loyalty-tiers", headers=HEADERS).json()]
    assert levels == [1, 2]


def test_promotion_and_challenge_admin(client):
    now = utcnow()
    promo = client.post(
        "/admin/promotions",
        json={
            "name": "Happy hour",
            "type": "BONUS_POINTS",
            "status": "ACTIVE",
            "bonus_points": 15,
            "start_date": (now - timedelta(hours=1)).isoformat(),
            "end_date": (now + timedelta(hours=1)).isoformat(),
        },
        headers=HEADERS,
    )
    challenge = client.post(
        "/admin/challenges",
        json={
            "name": "First order",
            "type": "ORDER_COUNT",
            "status": "ACTIVE",
            "target_value": "1",
            "completion_points": 20,
            "start_date": (now - timedelta(hours=1)).isoformat(),
            "end_date": (now + timedelta(days=1)).isoformat(),
        },
        headers=HEADERS,
    )
    assert promo.status_code == 200, promo.text
    assert challenge.status_code == 200, challenge.text

    _order(client)

    account = client.get("/accounts/by-user/user-1", headers=HEADERS).json()
    assert account["current_points"] == 100 + 50 + 15 + 20
    progress = client.get(f"/accounts/{account['id']}/challenges", headers=HEADERS).json()
    assert progress[0]["completed_at"] is not None


def test_program_settings_and_stats(client):
    updated = client.put("/admin/program-settings", json={"welcome_bonus": 25}, headers=HEADERS)
    assert updated.json()["welcome_bonus"] == 25
    assert updated.json()["referral_bonus"] == 500

    _create_account(client, "a")
    _create_account(client, "b")

    stats = client.get("/admin/stats", headers=HEADERS).json()
    assert stats["total_members"] == 2
    assert stats["total_points_issued"] == 50


def test_adjustment_and_deactivation(client):
    account = _create_account(client)

    adjusted = client.post(
        f"/accounts/{account['id']}/adjustments",
        json={"points": -30, "reason": "spilled drink"},
        headers=HEADERS,
    )
    client.post(f"/accounts/{account['id']}/deactivate", headers=HEADERS)
    blocked = _order(client)

    assert adjusted.json()["balance_after"] == 70
    assert blocked.status_code == 422
    assert blocked.json()["code"] == "ACCOUNT_INACTIVE"
