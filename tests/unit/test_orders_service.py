import pytest

from storefront.checkout.schemas import DeliveryType, PendingOrder, PendingOrderItem
from storefront.orders import repository as orders_repo
from storefront.orders import service as orders_service
from storefront.utils.errors import NotFoundError, UpstreamError, ValidationError


def _pending() -> PendingOrder:
    return PendingOrder(
        order_id="order-1",
        user_id="user-1",
        user_email="buyer@example.com",
        order_items=[
            PendingOrderItem(product_id="A", quantity=2, unit_price=500),
            PendingOrderItem(product_id="B", quantity=1, unit_price=250.5),
        ],
        delivery_type=DeliveryType.PSV,
        total_price=1450.5,
        delivery_fee=200,
        stage_id="stage-1",
        stage_name="Kencom",
        reference="sf-ref-1",
    )


@pytest.mark.asyncio
async def test_materialize_creates_order_items_and_clears_checked_out_lines(ctx, db):
    db.add_cart_line("user-1", "A", 2)
    db.add_cart_line("user-1", "B", 1)
    db.add_cart_line("user-1", "C", 4, selected=False)
    key = await ctx.staging.stage(_pending())

    result = await orders_service.materialize_order(ctx, _pending(), "sf-ref-1", staging_key=key)

    assert result.created is True
    order = db.rows("orders")[0]
    assert order["id"] == "order-1"
    assert order["order_status"] == "success"
    assert order["tracking_status"] == "Pending"
    assert order["number_of_items_bought"] == 3
    assert order["delivery_location"] == "Kencom"
    assert order["payment_reference"] == "sf-ref-1"
    assert len(db.rows("order_items")) == 2
    assert [line["product_id"] for line in db.rows("cart")] == ["C"]
    assert await ctx.staging.get(key) is None
    assert (await ctx.queue.counts())["waiting"] == 1


@pytest.mark.asyncio
async def test_second_materialization_is_a_no_op(ctx, db):
    await orders_service.materialize_order(ctx, _pending(), "sf-ref-1")
    again = await orders_service.materialize_order(ctx, _pending(), "sf-ref-1")

    assert again.created is False
    assert again.order["id"] == "order-1"
    assert len(db.rows("orders")) == 1
    assert len(db.rows("order_items")) == 2


@pytest.mark.asyncio
async def test_item_failure_deletes_the_order(ctx, db):
    db.fail_on.add(("order_items", "insert"))
    with pytest.raises(UpstreamError):
        await orders_service.materialize_order(ctx, _pending(), "sf-ref-1")
    assert db.rows("orders") == []
    assert db.rows("order_items") == []


@pytest.mark.asyncio
async def test_concurrent_insert_is_resolved_by_rereading(ctx, db, monkeypatch):
    # l'autre chemin (webhook) insère entre la lecture et l'insertion
    real_get_order = orders_repo.get_order
    lookups = []

    def racing_get_order(client, order_id):
        lookups.append(order_id)
        if len(lookups) == 1:
            db.tables["orders"].append({"id": "order-1", "order_status": "success", "payment_reference": "sf-ref-1"})
            return None
        return real_get_order(client, order_id)

    monkeypatch.setattr(orders_repo, "get_order", racing_get_order)
    monkeypatch.setattr(orders_repo, "find_order_by_reference", lambda client, ref: None)

    result = await orders_service.materialize_order(ctx, _pending(), "sf-ref-1")
    assert result.created is False
    assert len(db.rows("orders")) == 1
    assert db.rows("order_items") == []


@pytest.mark.asyncio
async def test_email_enqueue_failure_does_not_fail_materialization(ctx, db, monkeypatch):
    async def broken_enqueue(*args, **kwargs):
        raise RuntimeError("redis down")

    monkeypatch.setattr(ctx.queue, "enqueue", broken_enqueue)
    result = await orders_service.materialize_order(ctx, _pending(), "sf-ref-1")
    assert result.created is True


def test_tracking_transitions(ctx, db):
    db.tables["orders"].append({"id": "o1", "order_status": "success", "tracking_status": "Pending"})

    assert orders_service.update_tracking(ctx, "o1", "Dispatched")["tracking_status"] == "Dispatched"
    with pytest.raises(ValidationError):
        orders_service.update_tracking(ctx, "o1", "Pending")
    assert orders_service.update_tracking(ctx, "o1", "Delivered")["tracking_status"] == "Delivered"
    with pytest.raises(ValidationError):
        orders_service.update_tracking(ctx, "o1", "Cancelled")


def test_tracking_requires_a_paid_existing_order(ctx, db):
    db.tables["orders"].append({"id": "o2", "order_status": "pending", "tracking_status": None})
    with pytest.raises(ValidationError, match="not paid"):
        orders_service.update_tracking(ctx, "o2", "Dispatched")
    with pytest.raises(NotFoundError):
        orders_service.update_tracking(ctx, "missing", "Dispatched")
    with pytest.raises(ValidationError, match="Unknown tracking status"):
        orders_service.update_tracking(ctx, "o2", "Lost")
