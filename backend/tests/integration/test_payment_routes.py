"""
Integration tests for checkout, payment confirmation, the Stripe webhook,
promo codes and pricing.
"""
import hashlib
import hmac
import json
import time

import pytest

from balzac.models.purchase import PromoCode, PurchaseStatus, UserLevelPurchase

API = "/api/v1"


def signed_event(secret, checkout, event_type="checkout.session.completed"):
    """Webhook body and a ``Stripe-Signature`` header as Stripe computes it."""
    payload = json.dumps({
        "id": "evt_test_1",
        "object": "event",
        "type": event_type,
        "data": {
            "object": {
                "id": checkout.id,
                "object": "checkout.session",
                "url": checkout.url,
                "payment_status": checkout.payment_status,
                "metadata": checkout.metadata,
            }
        },
    })
    timestamp = int(time.time())
    signature = hmac.new(
        secret.encode(), f"{timestamp}.{payload}".encode(), hashlib.sha256
    ).hexdigest()
    return payload, {"Stripe-Signature": f"t={timestamp},v1={signature}", "Content-Type": "application/json"}


@pytest.fixture
def paid_level(set_level_price):
    return set_level_price(2, 29.99)


@pytest.fixture
def checkout(api_client, learner, auth_headers, gateway, paid_level):
    """A checkout opened by the learner for level 2."""
    api_client.post(f"{API}/create-payment", headers=auth_headers(learner), json={"level": 2})
    return gateway.sessions["cs_test_0001"]


def purchases_of(db_session, user):
    db_session.expire_all()
    return db_session.query(UserLevelPurchase).filter_by(user_id=user.id).all()


@pytest.mark.integration
class TestCreatePayment:
    def test_returns_the_checkout_url(self, api_client, db_session, learner, auth_headers, gateway, paid_level):
        response = api_client.post(
            f"{API}/create-payment",
            headers={**auth_headers(learner), "Origin": "https://app.balzac.test"},
            json={"level": "2"},
        )

        assert response.status_code == 200
        assert response.json() == {"url": "https://checkout.stripe.test/cs_test_0001"}
        created = gateway.created[0]
        assert created["price_euros"] == 29.99
        assert created["success_url"].startswith("https://app.balzac.test/dashboard?payment=success&level=2")

        [purchase] = purchases_of(db_session, learner)
        assert purchase.status == PurchaseStatus.PENDING.value
        assert purchase.payment_reference == "cs_test_0001"

    def test_partial_promo_code_lowers_the_price(
        self, api_client, learner, auth_headers, gateway, paid_level, make_promo_code
    ):
        make_promo_code("RENTREE20", 2, 20)

        response = api_client.post(
            f"{API}/create-payment", headers=auth_headers(learner), json={"level": 2, "promo_code": "rentree20"}
        )

        assert response.status_code == 200
        assert gateway.created[0]["price_euros"] == 23.99
        assert gateway.created[0]["promo_code"] == "RENTREE20"

    def test_free_level(self, api_client, learner, auth_headers, set_level_price):
        set_level_price(3, 0)

        response = api_client.post(f"{API}/create-payment", headers=auth_headers(learner), json={"level": 3})

        assert response.status_code == 400
        assert response.json()["detail"] == "Ce niveau est gratuit"

    def test_level_without_template(self, api_client, learner, auth_headers):
        response = api_client.post(f"{API}/create-payment", headers=auth_headers(learner), json={"level": 1})

        assert response.status_code == 404

    @pytest.mark.parametrize("level", [None, "abc", 0, 11])
    def test_invalid_level(self, api_client, learner, auth_headers, level):
        response = api_client.post(f"{API}/create-payment", headers=auth_headers(learner), json={"level": level})

        assert response.status_code == 400

    def test_gateway_failure_leaves_no_purchase(
        self, api_client, db_session, learner, auth_headers, gateway, paid_level
    ):
        gateway.fail_create = True

        response = api_client.post(f"{API}/create-payment", headers=auth_headers(learner), json={"level": 2})

        assert response.status_code == 500
        assert purchases_of(db_session, learner) == []

    def test_too_many_pending_checkouts(self, api_client, learner, auth_headers, paid_level):
        headers = auth_headers(learner)
        for _ in range(5):
            api_client.post(f"{API}/create-payment", headers=headers, json={"level": 2})

        response = api_client.post(f"{API}/create-payment", headers=headers, json={"level": 2})

        assert response.status_code == 429


@pytest.mark.integration
class TestVerifyPayment:
    def test_paid_checkout_unlocks_the_level(
        self, api_client, db_session, learner, auth_headers, gateway, checkout
    ):
        gateway.pay(checkout.id)

        response = api_client.post(
            f"{API}/verify-payment", headers=auth_headers(learner), json={"sessionId": checkout.id}
        )

        assert response.json() == {"success": True, "level": 2}
        [purchase] = purchases_of(db_session, learner)
        assert purchase.status == PurchaseStatus.COMPLETED.value
        assert purchase.purchased_at is not None

        access = api_client.get(f"{API}/access/2", headers=auth_headers(learner)).json()
        assert access["reason"] == "purchased"
        assert access["has_access"] is True

    def test_unpaid_checkout(self, api_client, learner, auth_headers, checkout):
        response = api_client.post(
            f"{API}/verify-payment", headers=auth_headers(learner), json={"sessionId": checkout.id}
        )

        assert response.json() == {"success": False, "level": None}

    def test_checkout_of_another_learner(self, api_client, make_user, auth_headers, gateway, checkout):
        gateway.pay(checkout.id)

        response = api_client.post(
            f"{API}/verify-payment", headers=auth_headers(make_user()), json={"sessionId": checkout.id}
        )

        assert response.json()["success"] is False

    @pytest.mark.parametrize("session_id", [None, "", "pi_123", "cs_" + "x" * 100])
    def test_malformed_session_id(self, api_client, learner, auth_headers, session_id):
        response = api_client.post(
            f"{API}/verify-payment", headers=auth_headers(learner), json={"sessionId": session_id}
        )

        assert response.status_code == 400

    def test_rate_limited(self, api_client, learner, auth_headers, checkout):
        headers = auth_headers(learner)
        statuses = [
            api_client.post(f"{API}/verify-payment", headers=headers, json={"sessionId": checkout.id}).status_code
            for _ in range(11)
        ]

        assert statuses == [200] * 10 + [429]


@pytest.mark.integration
class TestStripeWebhook:
    def test_paid_checkout_completes_the_purchase(
        self, api_client, db_session, learner, gateway, checkout
    ):
        payload, headers = signed_event(gateway.webhook_secret, gateway.pay(checkout.id))

        first = api_client.post(f"{API}/webhooks/stripe", content=payload, headers=headers)
        second = api_client.post(f"{API}/webhooks/stripe", content=payload, headers=headers)

        assert first.json() == {"received": True, "handled": True}
        assert second.status_code == 200
        purchases = purchases_of(db_session, learner)
        assert [p.status for p in purchases] == [PurchaseStatus.COMPLETED.value]

    def test_consumes_the_promo_code(
        self, api_client, db_session, learner, auth_headers, gateway, paid_level, make_promo_code
    ):
        make_promo_code("RENTREE20", 2, 20)
        api_client.post(
            f"{API}/create-payment", headers=auth_headers(learner), json={"level": 2, "promo_code": "RENTREE20"}
        )
        payload, headers = signed_event(gateway.webhook_secret, gateway.pay("cs_test_0001"))

        api_client.post(f"{API}/webhooks/stripe", content=payload, headers=headers)

        db_session.expire_all()
        promo = db_session.query(PromoCode).filter_by(code="RENTREE20").one()
        assert promo.is_used
        assert promo.used_by == learner.id

    def test_missing_local_row_is_rebuilt(self, api_client, db_session, learner, gateway, checkout):
        db_session.query(UserLevelPurchase).delete()
        db_session.commit()
        payload, headers = signed_event(gateway.webhook_secret, gateway.pay(checkout.id))

        api_client.post(f"{API}/webhooks/stripe", content=payload, headers=headers)

        [purchase] = purchases_of(db_session, learner)
        assert purchase.level == 2
        assert purchase.price_paid == 29.99
        assert purchase.status == PurchaseStatus.COMPLETED.value

    def test_unpaid_checkout_is_ignored(self, api_client, db_session, learner, gateway, checkout):
        payload, headers = signed_event(gateway.webhook_secret, checkout)

        response = api_client.post(f"{API}/webhooks/stripe", content=payload, headers=headers)

        assert response.json() == {"received": True, "handled": False}
        assert purchases_of(db_session, learner)[0].status == PurchaseStatus.PENDING.value

    def test_other_events_are_acknowledged(self, api_client, gateway, checkout):
        payload, headers = signed_event(gateway.webhook_secret, checkout, "customer.created")

        response = api_client.post(f"{API}/webhooks/stripe", content=payload, headers=headers)

        assert response.json() == {"received": True, "handled": False}

    def test_bad_signature(self, api_client, db_session, learner, gateway, checkout):
        payload, headers = signed_event("whsec_someone_else", gateway.pay(checkout.id))

        response = api_client.post(f"{API}/webhooks/stripe", content=payload, headers=headers)

        assert response.status_code == 400
        assert purchases_of(db_session, learner)[0].status == PurchaseStatus.PENDING.value

    def test_missing_signature(self, api_client, gateway, checkout):
        payload, _ = signed_event(gateway.webhook_secret, checkout)

        response = api_client.post(f"{API}/webhooks/stripe", content=payload)

        assert response.status_code == 400


@pytest.mark.integration
class TestPromoCodes:
    def test_check(self, api_client, learner, auth_headers, make_promo_code):
        make_promo_code("BALZAC50", 2, 50)

        response = api_client.post(
            f"{API}/promo-codes/check", headers=auth_headers(learner), json={"code": " balzac50 ", "level": 2}
        )

        assert response.json() == {"valid": True, "discount": 50, "message": None}

    def test_check_for_another_level(self, api_client, learner, auth_headers, make_promo_code):
        make_promo_code("BALZAC50", 2, 50)

        response = api_client.post(
            f"{API}/promo-codes/check", headers=auth_headers(learner), json={"code": "BALZAC50", "level": 3}
        )

        assert response.status_code == 200
        assert response.json()["valid"] is False

    def test_expired_code(self, api_client, learner, auth_headers, make_promo_code, expired):
        make_promo_code("OLD", 2, 50, expires_in=expired)

        response = api_client.post(
            f"{API}/promo-codes/check", headers=auth_headers(learner), json={"code": "OLD", "level": 2}
        )

        assert response.json()["message"] == "Ce code promo a expiré."

    def test_apply_free_access_code(self, api_client, learner, auth_headers, paid_level, make_promo_code):
        make_promo_code("OFFERT", 2, 100)
        headers = auth_headers(learner)

        response = api_client.post(f"{API}/promo-codes/apply", headers=headers, json={"code": "OFFERT", "level": 2})

        assert response.status_code == 200
        purchase = response.json()
        assert purchase["payment_method"] == "promo_code"
        assert purchase["price_paid"] == 0.0
        assert purchase["status"] == "completed"

        again = api_client.post(f"{API}/promo-codes/apply", headers=headers, json={"code": "OFFERT", "level": 2})
        assert again.status_code == 400

        assert [p["level"] for p in api_client.get(f"{API}/purchases", headers=headers).json()] == [2]

    def test_apply_partial_code(self, api_client, learner, auth_headers, make_promo_code):
        make_promo_code("RENTREE20", 2, 20)

        response = api_client.post(
            f"{API}/promo-codes/apply", headers=auth_headers(learner), json={"code": "RENTREE20", "level": 2}
        )

        assert response.status_code == 400


@pytest.mark.integration
class TestPricingAndAccess:
    def test_pricing_is_public(self, api_client, set_level_price):
        set_level_price(2, 29.99, free_sessions=1)
        set_level_price(3, 39.99)

        response = api_client.get(f"{API}/pricing")

        assert response.status_code == 200
        assert [(p["level"], p["price_euros"], p["free_sessions"]) for p in response.json()] == [
            (2, 29.99, 1),
            (3, 39.99, 0),
        ]

    def test_first_level_is_free(self, api_client, learner, auth_headers):
        access = api_client.get(f"{API}/access/1", headers=auth_headers(learner)).json()

        assert access["reason"] == "free_level"
        assert access["has_access"] is True

    def test_free_sessions_then_purchase_required(self, api_client, learner, auth_headers, set_level_price):
        set_level_price(2, 29.99, free_sessions=2)

        access = api_client.get(f"{API}/access/2", headers=auth_headers(learner)).json()

        assert access["reason"] == "free_sessions"
        assert access["free_sessions_remaining"] == 2

    def test_paid_level(self, api_client, learner, auth_headers, paid_level):
        access = api_client.get(f"{API}/access/2", headers=auth_headers(learner)).json()

        assert access == {
            "level": 2,
            "has_access": False,
            "reason": "purchase_required",
            "is_purchased": False,
            "free_sessions": 0,
            "sessions_used": 0,
            "free_sessions_remaining": 0,
            "price_euros": 29.99,
        }

    def test_out_of_range_level(self, api_client, learner, auth_headers):
        assert api_client.get(f"{API}/access/42", headers=auth_headers(learner)).status_code == 400
