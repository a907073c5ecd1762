"""
Unit tests for the level access gate and promo codes.
"""
from datetime import timedelta

import pytest

from balzac.core.database import utcnow
from balzac.core.events import events, LEVEL_PRICING_CHANGED
from balzac.core.exceptions import ConflictError, ValidationFailed
from balzac.models.purchase import PaymentMethod, PromoCode, PurchaseStatus, UserLevelPurchase
from balzac.models.sessions import TestSession
from balzac.services import access, promo


def start_sessions(db, user_id, level, count, deleted=False):
    for number in range(1, count + 1):
        session = TestSession(user_id=user_id, level=level, session_number=number)
        if deleted:
            session.deleted_at = utcnow()
        db.add(session)
    db.commit()


@pytest.mark.unit
class TestCheckLevelNumber:
    @pytest.mark.parametrize("value, expected", [(1, 1), ("2", 2), (10, 10)])
    def test_valid_levels(self, value, expected):
        assert access.check_level_number(value) == expected

    @pytest.mark.parametrize("value", [None, "", "abc", "1.5", 0, 11, -3])
    def test_invalid_levels(self, value):
        with pytest.raises(ValidationFailed):
            access.check_level_number(value)


@pytest.mark.unit
class TestAccessStatus:
    def test_first_level_is_free(self, db_session, learner, set_level_price):
        set_level_price(1, 19.0)

        status = access.access_status(db_session, learner.id, 1)

        assert status["has_access"]
        assert status["reason"] == "free_level"

    def test_level_without_template_is_free(self, db_session, learner):
        assert access.access_status(db_session, learner.id, 2)["reason"] == "free_level"

    def test_free_sessions_then_purchase_required(self, db_session, learner, set_level_price):
        set_level_price(2, 29.99, free_sessions=2)

        status = access.access_status(db_session, learner.id, 2)
        assert status["reason"] == "free_sessions"
        assert status["free_sessions_remaining"] == 2

        start_sessions(db_session, learner.id, 2, 2)

        status = access.access_status(db_session, learner.id, 2)
        assert not status["has_access"]
        assert status["reason"] == "purchase_required"
        assert status["price_euros"] == 29.99

    def test_terminated_sessions_do_not_consume_free_sessions(self, db_session, learner, set_level_price):
        set_level_price(2, 29.99, free_sessions=1)
        start_sessions(db_session, learner.id, 2, 3, deleted=True)

        assert access.can_access_level(db_session, learner.id, 2)

    def test_completed_purchase_grants_access(self, db_session, learner, set_level_price):
        set_level_price(2, 29.99)
        db_session.add(UserLevelPurchase(
            user_id=learner.id,
            level=2,
            price_paid=29.99,
            status=PurchaseStatus.COMPLETED.value,
            payment_method=PaymentMethod.STRIPE.value,
        ))
        db_session.commit()

        status = access.access_status(db_session, learner.id, 2)

        assert status["reason"] == "purchased"
        assert status["is_purchased"]

    def test_pending_purchase_does_not_grant_access(self, db_session, learner, set_level_price):
        set_level_price(2, 29.99)
        db_session.add(UserLevelPurchase(
            user_id=learner.id,
            level=2,
            price_paid=29.99,
            status=PurchaseStatus.PENDING.value,
            payment_method=PaymentMethod.STRIPE.value,
        ))
        db_session.commit()

        assert not access.can_access_level(db_session, learner.id, 2)

    def test_pricing_lists_active_templates(self, db_session, set_level_price):
        set_level_price(2, 29.99, free_sessions=1)
        set_level_price(3, 49.0)

        pricing = access.list_level_pricing(db_session)

        assert [(p["level"], p["price_euros"], p["free_sessions"]) for p in pricing] == [
            (2, 29.99, 1),
            (3, 49.0, 0),
        ]

    def test_pricing_is_cached_until_a_change_is_published(self, db_session, set_level_price):
        template = set_level_price(2, 29.99)
        assert [p["price_euros"] for p in access.list_level_pricing(db_session)] == [29.99]

        template.price_euros = 19.99
        db_session.commit()
        assert [p["price_euros"] for p in access.list_level_pricing(db_session)] == [29.99]

        events.publish(LEVEL_PRICING_CHANGED, {"level": 2})

        assert [p["price_euros"] for p in access.list_level_pricing(db_session)] == [19.99]

    def test_cached_entries_are_copies(self, db_session, set_level_price):
        set_level_price(2, 29.99)
        access.list_level_pricing(db_session)[0]["price_euros"] = 0

        assert access.list_level_pricing(db_session)[0]["price_euros"] == 29.99


@pytest.mark.unit
class TestPromoCodes:
    def test_check_valid_code_is_case_insensitive(self, db_session, make_promo_code):
        make_promo_code("RENTREE20", 2, 20)

        assert promo.check_code(db_session, "  rentree20 ", 2) == {
            "valid": True, "discount": 20, "message": None
        }

    def test_code_is_bound_to_its_level(self, db_session, make_promo_code):
        make_promo_code("RENTREE20", 2, 20)

        result = promo.check_code(db_session, "RENTREE20", 3)

        assert not result["valid"]
        assert result["discount"] == 0

    def test_used_and_expired_codes(self, db_session, make_promo_code, expired):
        make_promo_code("USED", 2, 20, is_used=True)
        make_promo_code("OLD", 2, 20, expires_in=expired)

        assert promo.check_code(db_session, "USED", 2)["message"] == "Ce code promo a déjà été utilisé."
        assert promo.check_code(db_session, "OLD", 2)["message"] == "Ce code promo a expiré."

    def test_code_expiring_later_is_valid(self, db_session, make_promo_code):
        make_promo_code("SOON", 2, 20, expires_in=timedelta(days=1))

        assert promo.check_code(db_session, "SOON", 2)["valid"]

    def test_discounted_price(self):
        assert promo.discounted_price(29.99, 20) == 23.99
        assert promo.discounted_price(50.0, 50) == 25.0

    def test_free_access_code_creates_completed_purchase(self, db_session, learner, make_promo_code):
        make_promo_code("OFFERT", 2, 100)

        purchase = promo.apply_free_access_code(db_session, learner.id, "offert", 2)

        assert purchase.status == PurchaseStatus.COMPLETED.value
        assert purchase.price_paid == 0.0
        assert purchase.payment_method == PaymentMethod.PROMO_CODE.value
        code = db_session.query(PromoCode).filter_by(code="OFFERT").one()
        assert code.is_used
        assert code.used_by == learner.id
        assert access.can_access_level(db_session, learner.id, 2)

    def test_free_access_code_is_single_use(self, db_session, learner, make_user, make_promo_code):
        make_promo_code("OFFERT", 2, 100)
        promo.apply_free_access_code(db_session, learner.id, "OFFERT", 2)
        other = make_user()

        with pytest.raises(ValidationFailed):
            promo.apply_free_access_code(db_session, other.id, "OFFERT", 2)

    def test_partial_code_cannot_be_applied_directly(self, db_session, learner, make_promo_code):
        make_promo_code("RENTREE20", 2, 20)

        with pytest.raises(ValidationFailed):
            promo.apply_free_access_code(db_session, learner.id, "RENTREE20", 2)

    def test_already_purchased_level(self, db_session, learner, make_promo_code):
        make_promo_code("OFFERT1", 2, 100)
        make_promo_code("OFFERT2", 2, 100)
        promo.apply_free_access_code(db_session, learner.id, "OFFERT1", 2)

        with pytest.raises(ConflictError):
            promo.apply_free_access_code(db_session, learner.id, "OFFERT2", 2)
