import pytest
from pydantic import ValidationError as PydanticValidationError

from storefront.cart.pricing import build_order_items, price_from_product
from storefront.checkout.delivery import quote_delivery
from storefront.checkout.schemas import CheckoutRequest, DeliveryType
from storefront.utils.errors import ValidationError

PRODUCTS = {"A": {"id": "A", "price": 500}, "B": {"id": "B", "price": "250.50"}}


def test_price_from_product_accepts_strings_and_flags_bad_values():
    assert price_from_product({"price": "12.5"}) == 12.5
    assert price_from_product({"price": 0}) == 0.0
    assert price_from_product({"price": None}) is None
    assert price_from_product({}) is None
    assert price_from_product({"price": "n/a"}) is None
    assert price_from_product({"price": -5}) is None


def test_build_order_items_never_sells_an_unpriced_product_for_free():
    products = dict(PRODUCTS, C={"id": "C", "price": None})
    with pytest.raises(ValidationError, match="Product C has no valid price"):
        build_order_items([{"product_id": "A", "quantity": 1}, {"product_id": "C", "quantity": 1}], products)


def test_build_order_items_prices_and_aggregates_lines():
    lines = [
        {"product_id": "A", "quantity": 1},
        {"product_id": "B", "quantity": 2},
        {"product_id": "A", "quantity": 1},
    ]
    items, subtotal = build_order_items(lines, PRODUCTS)
    assert {(i.product_id, i.quantity, i.unit_price) for i in items} == {("A", 2, 500.0), ("B", 2, 250.5)}
    assert subtotal == 1501.0


def test_build_order_items_rejects_empty_cart_and_missing_products():
    with pytest.raises(ValidationError, match="Cart is empty"):
        build_order_items([], PRODUCTS)
    with pytest.raises(ValidationError, match="no longer available"):
        build_order_items([{"product_id": "Z", "quantity": 1}], PRODUCTS)


@pytest.mark.parametrize("body,alias", [
    ({"deliveryType": "PSV"}, "stageId"),
    ({"deliveryType": "Outside Nairobi"}, "county"),
    ({"deliveryType": "Express Delivery"}, "storeAddress"),
])
def test_checkout_request_requires_type_specific_field(body, alias):
    with pytest.raises(PydanticValidationError) as exc:
        CheckoutRequest.model_validate(body)
    assert f"{alias} is required" in str(exc.value)


def test_checkout_request_accepts_complete_bodies():
    assert CheckoutRequest.model_validate({"deliveryType": "Self Pickup"}).delivery_type is DeliveryType.SELF_PICKUP
    req = CheckoutRequest.model_validate({"deliveryType": "Outside Nairobi", "county": "Kisumu", "deliveryFee": 350})
    assert req.county == "Kisumu" and req.delivery_fee == 350
    with pytest.raises(PydanticValidationError):
        CheckoutRequest.model_validate({"deliveryType": "Drone"})
    with pytest.raises(PydanticValidationError):
        CheckoutRequest.model_validate({"deliveryType": "Self Pickup", "amount": 0})


def test_psv_fee_and_name_come_from_stage_table(db):
    quote = quote_delivery(db, CheckoutRequest.model_validate({"deliveryType": "PSV", "stageId": "stage-1"}))
    assert (quote.fee, quote.stage_id, quote.stage_name) == (200.0, "stage-1", "Kencom")


def test_unknown_psv_stage_is_rejected(db):
    with pytest.raises(ValidationError, match="Invalid PSV stage"):
        quote_delivery(db, CheckoutRequest.model_validate({"deliveryType": "PSV", "stageId": "nowhere"}))


def test_other_delivery_types_fees(db):
    outside = CheckoutRequest.model_validate({"deliveryType": "Outside Nairobi", "county": "Kisumu", "deliveryFee": 350})
    assert quote_delivery(db, outside).fee == 350
    no_fee = CheckoutRequest.model_validate({"deliveryType": "Outside Nairobi", "county": "Kisumu"})
    assert quote_delivery(db, no_fee).fee == 0
    express = CheckoutRequest.model_validate({"deliveryType": "Express Delivery", "storeAddress": "Moi Avenue"})
    assert quote_delivery(db, express).fee == 0
    assert quote_delivery(db, CheckoutRequest.model_validate({"deliveryType": "Self Pickup"})).fee == 0
