"""Order placement: pricing scenarios, validation, transactional writes."""

from dataclasses import replace
from decimal import Decimal

import pytest
from sqlalchemy.exc import SQLAlchemyError

from common.exceptions import InvalidCoupon, PersistenceError, ValidationError
from common.upload import receipt_url_prefix
from modules.auth.deps import CheckoutContext, CurrentUser
from modules.cart.service import cart_service
from modules.coupon.models import Coupon, CouponUsage
from modules.coupon.service import coupon_service
from modules.order.models import Order, OrderItem
from modules.order.service import compute_totals, order_service, validate_checkout


RECEIPT_URL = receipt_url_prefix() + "ab12" * 8 + ".png"


def _order_count(db):
    return db.query(Order).count()


class TestComputeTotals:
    def test_no_discount(self):
        totals = compute_totals(Decimal("2000"))
        assert totals.total == Decimal("2000.00")
        assert totals.discount == Decimal("0.00")

    def test_discount_larger_than_subtotal_floors_at_zero(self):
        totals = compute_totals(Decimal("200"), Decimal("500"))
        assert totals.discount == Decimal("200.00")
        assert totals.total == Decimal("0.00")

    def test_rounds_half_up(self):
        totals = compute_totals("100.005", "0.004")
        assert totals.subtotal == Decimal("100.01")
        assert totals.total == Decimal("100.01")


class TestPlacementScenarios:
    def test_plain_order(self, db, make_product, make_cart, checkout_form, guest_context, sender):
        cart = make_cart((make_product(price="1000"), 2))

        result = order_service.place_order(db, cart, checkout_form, guest_context)

        order = result.order
        assert order.subtotal_amount == Decimal("2000.00")
        assert order.discount_amount == Decimal("0.00")
        assert order.total_amount == Decimal("2000.00")
        assert order.status == "pending"
        assert order.order_number.startswith("ORD-")
        assert len(order.items) == 1
        assert order.items[0].subtotal == Decimal("2000.00")
        assert order.items[0].product_name == "Oud Candle"
        assert result.notification_sent is True
        assert sender.messages[0].to == ["zeene.contact@gmail.com"]

    def test_percentage_coupon_with_cap(self, db, make_product, make_cart, make_coupon,
                                        checkout_form, guest_context):
        make_coupon(code="TENOFF", discount_value="10", max_discount=Decimal("300"))
        cart = make_cart((make_product(price="5000"), 1))

        order = order_service.place_order(db, cart, checkout_form, guest_context, coupon_code="tenoff").order

        assert order.subtotal_amount == Decimal("5000.00")
        assert order.discount_amount == Decimal("300.00")
        assert order.total_amount == Decimal("4700.00")
        assert order.coupon_code == "TENOFF"

    def test_fixed_coupon_larger_than_subtotal(self, db, make_product, make_cart, make_coupon,
                                               checkout_form, guest_context):
        make_coupon(code="FLAT500", discount_type="fixed", discount_value="500")
        cart = make_cart((make_product(price="200"), 1))

        quote = coupon_service.evaluate(db, "FLAT500", Decimal("200"))
        assert quote.discount_amount == Decimal("500.00")

        order = order_service.place_order(db, cart, checkout_form, guest_context, coupon_code="FLAT500").order

        assert order.discount_amount == Decimal("200.00")
        assert order.total_amount == Decimal("0.00")
        usage = db.query(CouponUsage).one()
        assert usage.discount_amount == Decimal("200.00")

    def test_bank_transfer_without_receipt_writes_nothing(self, db, make_product, make_cart,
                                                          checkout_form, guest_context):
        cart = make_cart((make_product(), 1))
        form = replace(checkout_form, payment_method="bank_transfer")

        with pytest.raises(ValidationError) as exc:
            order_service.place_order(db, cart, form, guest_context)

        assert "receipt_url" in exc.value.errors
        assert _order_count(db) == 0
        assert len(cart.lines) == 1

    def test_item_write_failure_rolls_back_order(self, db, make_product, make_cart, make_coupon,
                                                 checkout_form, guest_context, monkeypatch, sender):
        make_coupon(code="SAVE10", usage_limit=5)
        cart = make_cart((make_product(name="Candle"), 1), (make_product(name="Soap"), 1))

        def boom(*args, **kwargs):
            raise SQLAlchemyError("disk I/O error")

        monkeypatch.setattr(order_service, "_insert_items", boom)

        with pytest.raises(PersistenceError):
            order_service.place_order(db, cart, checkout_form, guest_context, coupon_code="SAVE10")

        db.expire_all()
        assert _order_count(db) == 0
        assert db.query(OrderItem).count() == 0
        assert db.query(Coupon).filter_by(code="SAVE10").one().usage_count == 0
        assert len(cart_service.get_cart(db, "test-session").lines) == 2
        assert sender.messages == []

    def test_order_number_exhaustion_rolls_back(self, db, make_product, make_cart, checkout_form,
                                                guest_context, monkeypatch, sender):
        import common.helpers as helpers

        product = make_product()
        taken = order_service.place_order(
            db, make_cart((product, 1), session_key="a"), checkout_form, guest_context,
        ).order.order_number
        sender.messages.clear()
        monkeypatch.setattr(helpers, "generate_order_number", lambda length=6: taken)

        with pytest.raises(PersistenceError):
            order_service.place_order(db, make_cart((product, 1), session_key="b"), checkout_form, guest_context)

        assert _order_count(db) == 1
        assert len(cart_service.get_cart(db, "b").lines) == 1
        assert sender.messages == []

    def test_coupon_lookup_failure_is_persistence_error(self, db, make_product, make_cart, make_coupon,
                                                        checkout_form, guest_context, monkeypatch):
        make_coupon(code="SAVE10")
        cart = make_cart((make_product(), 1))

        def boom(*args, **kwargs):
            raise SQLAlchemyError("connection reset")

        monkeypatch.setattr(coupon_service, "evaluate", boom)

        with pytest.raises(PersistenceError):
            order_service.place_order(db, cart, checkout_form, guest_context, coupon_code="SAVE10")

        assert _order_count(db) == 0
        assert len(cart_service.get_cart(db, "test-session").lines) == 1

    def test_script_receipt_url_writes_nothing(self, db, make_product, make_cart, checkout_form, guest_context):
        cart = make_cart((make_product(), 1))
        form = replace(checkout_form, payment_method="bank_transfer")

        with pytest.raises(ValidationError) as exc:
            order_service.place_order(db, cart, form, guest_context, receipt_url="javascript:alert(document.cookie)")

        assert exc.value.errors == {"receipt_url": "Please upload your receipt again"}
        assert _order_count(db) == 0


class TestPlacementEffects:
    def test_cart_cleared_after_placement(self, db, make_product, make_cart, checkout_form, guest_context):
        cart = make_cart((make_product(), 3))

        order_service.place_order(db, cart, checkout_form, guest_context)

        assert cart_service.get_summary(db, "test-session").is_empty

    def test_variant_lines_snapshotted(self, db, make_product, make_variant, make_cart,
                                       checkout_form, guest_context):
        product = make_product(price="1000")
        variant = make_variant(product, name="Gift Box", price_override="150")
        cart = make_cart((product, 2, variant))

        order = order_service.place_order(db, cart, checkout_form, guest_context).order

        item = order.items[0]
        assert item.product_name == "Oud Candle (Gift Box)"
        assert item.unit_price == Decimal("1150.00")
        assert item.subtotal == Decimal("2300.00")
        assert item.variant_id == variant.id

    def test_signed_in_user_recorded(self, db, make_product, make_cart, checkout_form):
        cart = make_cart((make_product(), 1))
        context = CheckoutContext(user=CurrentUser(id="user-42", email="a@example.com"), client_ip="10.0.0.1")

        order = order_service.place_order(db, cart, checkout_form, context).order

        assert order.user_id == "user-42"

    def test_bank_transfer_keeps_receipt(self, db, make_product, make_cart, checkout_form, guest_context):
        cart = make_cart((make_product(), 1))
        form = replace(checkout_form, payment_method="bank_transfer")

        order = order_service.place_order(db, cart, form, guest_context, receipt_url=RECEIPT_URL).order

        assert order.payment_method == "bank_transfer"
        assert order.receipt_url == RECEIPT_URL

    def test_email_failure_is_qualified_success(self, db, make_product, make_cart, checkout_form,
                                                guest_context, failing_sender):
        cart = make_cart((make_product(), 1))

        result = order_service.place_order(db, cart, checkout_form, guest_context)

        assert result.notification_sent is False
        assert failing_sender.attempts == 1
        assert _order_count(db) == 1

    def test_order_numbers_unique(self, db, make_product, make_cart, checkout_form, guest_context):
        product = make_product()
        numbers = set()
        for i in range(5):
            cart = make_cart((product, 1), session_key=f"s-{i}")
            numbers.add(order_service.place_order(db, cart, checkout_form, guest_context).order.order_number)

        assert len(numbers) == 5


class TestPlacementRejections:
    def test_empty_cart(self, db, make_cart, checkout_form, guest_context):
        cart = make_cart()

        with pytest.raises(ValidationError) as exc:
            order_service.place_order(db, cart, checkout_form, guest_context)
        assert "cart" in exc.value.errors

    def test_invalid_coupon_writes_nothing(self, db, make_product, make_cart, checkout_form, guest_context):
        cart = make_cart((make_product(), 1))

        with pytest.raises(InvalidCoupon):
            order_service.place_order(db, cart, checkout_form, guest_context, coupon_code="BOGUS")

        assert _order_count(db) == 0
        assert len(cart.lines) == 1

    def test_exhausted_coupon_rejected(self, db, make_product, make_cart, make_coupon,
                                       checkout_form, guest_context):
        make_coupon(code="ONCE", usage_limit=1)
        product = make_product()

        order_service.place_order(db, make_cart((product, 1), session_key="a"), checkout_form,
                                  guest_context, coupon_code="ONCE")

        with pytest.raises(InvalidCoupon):
            order_service.place_order(db, make_cart((product, 1), session_key="b"), checkout_form,
                                      guest_context, coupon_code="ONCE")
        assert _order_count(db) == 1


class TestValidateCheckout:
    def test_collects_every_field_error(self, checkout_form):
        form = replace(checkout_form, customer_name="A", email="nope", address="short", phone="123",
                       payment_method="crypto")

        with pytest.raises(ValidationError) as exc:
            validate_checkout(form)

        assert set(exc.value.errors) == {"customer_name", "email", "address", "phone", "payment_method"}

    def test_required_fields(self, checkout_form):
        form = replace(checkout_form, customer_name="", email="", address="", phone="")

        with pytest.raises(ValidationError) as exc:
            validate_checkout(form)

        assert exc.value.errors["customer_name"] == "Name is required"
        assert exc.value.errors["phone"] == "Phone number is required"

    def test_sanitizes_markup(self, checkout_form):
        form = replace(checkout_form, customer_name="<b>Ayesha</b> <script>alert(1)</script>Khan")

        cleaned = validate_checkout(form)

        assert cleaned.customer_name == "Ayesha Khan"

    def test_email_lowercased(self, checkout_form):
        cleaned = validate_checkout(replace(checkout_form, email="Ayesha@Example.COM"))
        assert cleaned.email == "ayesha@example.com"

    @pytest.mark.parametrize("url", [
        "https://evil.example.com/x.png",
        "javascript:alert(document.cookie)",
        receipt_url_prefix() + "../../config/settings.py",
        receipt_url_prefix() + "ab12" * 8 + ".svg",
        RECEIPT_URL + "?next=https://evil.example.com",
    ])
    def test_rejects_receipt_urls_not_issued_by_upload(self, checkout_form, url):
        form = replace(checkout_form, payment_method="bank_transfer")

        with pytest.raises(ValidationError) as exc:
            validate_checkout(form, receipt_url=url)

        assert set(exc.value.errors) == {"receipt_url"}

    def test_receipt_url_ignored_for_cash_on_delivery(self, checkout_form):
        assert validate_checkout(checkout_form, receipt_url="https://evil.example.com/x.png")

    def test_overlong_name_and_address_reported(self, checkout_form):
        form = replace(checkout_form, customer_name="A" * 101, address="House 12, " + "x" * 500)

        with pytest.raises(ValidationError) as exc:
            validate_checkout(form)

        assert exc.value.errors == {
            "customer_name": "Name must be at most 100 characters",
            "address": "Address must be at most 500 characters",
        }

    def test_name_and_address_at_limit_accepted(self, checkout_form):
        form = replace(checkout_form, customer_name="A" * 100, address="House 12, " + "x" * 490)

        cleaned = validate_checkout(form)

        assert len(cleaned.customer_name) == 100
        assert len(cleaned.address) == 500
