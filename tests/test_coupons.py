from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi import status

from models.coupon import Coupon
from services.coupons import calculate_discount, coupon_rejection_reason


@pytest.fixture
def make_coupon(db):
    def _make(code="SAVE10", type_="percentage", value="10", **kwargs):
        coupon = Coupon(code=code, name=kwargs.pop("name", code), type=type_, value=Decimal(value), **kwargs)
        db.add(coupon)
        db.commit()
        db.refresh(coupon)
        return coupon
    return _make


class TestCalculateDiscount:

    def test_percentage(self):
        coupon = Coupon(type="percentage", value=Decimal("10"))
        assert calculate_discount(coupon, Decimal("250000")) == Decimal("25000.00")

    def test_percentage_capped_by_maximum_discount(self):
        coupon = Coupon(type="percentage", value=Decimal("50"), maximum_discount=Decimal("100000"))
        assert calculate_discount(coupon, Decimal("1000000")) == Decimal("100000.00")

    def test_fixed_amount_never_exceeds_total(self):
        coupon = Coupon(type="fixed_amount", value=Decimal("80000"))
        assert calculate_discount(coupon, Decimal("50000")) == Decimal("50000.00")

    def test_zero_total(self):
        coupon = Coupon(type="fixed_amount", value=Decimal("80000"))
        assert calculate_discount(coupon, 0) == Decimal("0.00")

    def test_rounds_to_cents(self):
        coupon = Coupon(type="percentage", value=Decimal("15"))
        assert calculate_discount(coupon, Decimal("33.33")) == Decimal("5.00")


class TestRejectionReasons:
    now = datetime(2026, 5, 1, 12, 0, 0)

    def _coupon(self, **kwargs):
        defaults = dict(type="percentage", value=Decimal("10"), is_active=True, used_count=0)
        defaults.update(kwargs)
        return Coupon(**defaults)

    def test_missing(self):
        assert coupon_rejection_reason(None, Decimal("1")) == "Coupon code does not exist"

    def test_deactivated(self):
        assert "deactivated" in coupon_rejection_reason(self._coupon(is_active=False), Decimal("1"), self.now)

    def test_not_started(self):
        coupon = self._coupon(starts_at=self.now + timedelta(days=1))
        assert "not active yet" in coupon_rejection_reason(coupon, Decimal("1"), self.now)

    def test_expired(self):
        coupon = self._coupon(expires_at=self.now - timedelta(seconds=1))
        assert "expired" in coupon_rejection_reason(coupon, Decimal("1"), self.now)

    def test_usage_limit(self):
        coupon = self._coupon(usage_limit=5, used_count=5)
        assert "usage limit" in coupon_rejection_reason(coupon, Decimal("1"), self.now)

    def test_minimum_amount(self):
        coupon = self._coupon(minimum_amount=Decimal("200000"))
        assert "Minimum order" in coupon_rejection_reason(coupon, Decimal("199999"), self.now)

    def test_valid(self):
        assert coupon_rejection_reason(self._coupon(), Decimal("1"), self.now) is None


class TestValidateEndpoint:
    """POST /coupons/validate"""

    def test_valid_code_is_case_insensitive(self, client, make_coupon):
        make_coupon(code="SAVE10", value="10")

        response = client.post("/coupons/validate", json={"coupon_code": "save10", "cart_total": 300000})

        assert response.status_code == status.HTTP_200_OK
        validation = response.json()["validation"]
        assert validation["is_valid"] is True
        assert validation["discount_amount"] == 30000.0
        assert validation["final_total"] == 270000.0
        assert validation["coupon"]["code"] == "SAVE10"

    def test_unknown_code(self, client):
        response = client.post("/coupons/validate", json={"coupon_code": "NOPE", "cart_total": 1000})

        assert response.status_code == status.HTTP_200_OK
        validation = response.json()["validation"]
        assert validation["is_valid"] is False
        assert validation["reason"] == "Coupon code does not exist"
        assert validation["coupon"] is None

    def test_negative_total_rejected(self, client):
        response = client.post("/coupons/validate", json={"coupon_code": "SAVE10", "cart_total": -1})
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
