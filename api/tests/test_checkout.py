import uuid
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal

import pytest
from sqlalchemy import text

from conftest import make_product
from kiosco.core.errors import InsufficientStock
from kiosco.core.money import round2
from kiosco.schemas.sales import PaymentMethod
from kiosco.services import catalog
from kiosco.services.checkout import CheckoutLine, checkout, group_lines


def post_checkout(client, headers, items, **extra):
    return client.post("/sales:checkout", json={"items": items, **extra}, headers=headers)


def sales_count(db):
    return db.execute(text("SELECT COUNT(*) FROM sales")).scalar_one()


def stock(db, product_id):
    return catalog.get_product(db, product_id)["stock"]


def test_checkout_records_sale_and_decrements_stock(client, db, seller, seller_headers):
    product = make_product(db, price=1500, stock=5)

    response = post_checkout(client, seller_headers, [{"productId": product["id"], "qty": 2}])

    assert response.status_code == 201
    body = response.json()
    assert body["total"] == 3000
    assert set(body) == {"saleId", "total"}
    assert stock(db, product["id"]) == 3

    detail = client.get(f"/sales/{body['saleId']}", headers=seller_headers).json()
    assert detail["payment_method"] == "CASH"
    assert detail["created_by"] == seller["id"]
    assert detail["total"] == 3000
    assert len(detail["items"]) == 1
    item = detail["items"][0]
    assert item["product_id"] == product["id"]
    assert item["qty"] == 2
    assert item["unit_price"] == 1500
    assert item["line_total"] == 3000


def test_legacy_checkout_path_is_still_served(client, db, seller_headers):
    product = make_product(db, price=1000, stock=2)

    response = client.post(
        "/sales/checkout",
        json={"items": [{"productId": product["id"], "qty": 1}], "paymentMethod": "MERCADO_PAGO"},
        headers=seller_headers,
    )

    assert response.status_code == 201
    sale = client.get(f"/sales/{response.json()['saleId']}", headers=seller_headers).json()
    assert sale["payment_method"] == "MERCADO_PAGO"


def test_duplicate_lines_are_grouped_into_one_item(client, db, seller_headers):
    product = make_product(db, price=1200, stock=10)

    response = post_checkout(
        client,
        seller_headers,
        [{"productId": product["id"], "qty": 1}, {"productId": product["id"], "qty": 2}],
    )

    assert response.status_code == 201
    assert response.json()["total"] == 3600
    detail = client.get(f"/sales/{response.json()['saleId']}", headers=seller_headers).json()
    assert [(i["product_id"], i["qty"]) for i in detail["items"]] == [(product["id"], 3)]
    assert stock(db, product["id"]) == 7


def test_insufficient_stock_leaves_everything_untouched(client, db, seller_headers):
    product = make_product(db, stock=2)

    response = post_checkout(client, seller_headers, [{"productId": product["id"], "qty": 3}])

    assert response.status_code == 409
    body = response.json()
    assert body["code"] == "INSUFFICIENT_STOCK"
    assert product["id"] in body["error"]
    assert stock(db, product["id"]) == 2
    assert sales_count(db) == 0


def test_failure_on_second_product_rolls_back_the_first(client, db, seller_headers):
    plenty = make_product(db, name="Agua Sin Gas 600ml", price=1200, stock=15)
    scarce = make_product(db, name="Galletas Vainilla", price=2000, stock=1)

    response = post_checkout(
        client,
        seller_headers,
        [{"productId": plenty["id"], "qty": 4}, {"productId": scarce["id"], "qty": 2}],
    )

    assert response.status_code == 409
    assert stock(db, plenty["id"]) == 15
    assert stock(db, scarce["id"]) == 1
    assert sales_count(db) == 0
    assert db.execute(text("SELECT COUNT(*) FROM sale_items")).scalar_one() == 0


def test_unknown_product_is_rejected(client, db, seller_headers):
    missing = str(uuid.uuid4())

    response = post_checkout(client, seller_headers, [{"productId": missing, "qty": 1}])

    assert response.status_code == 400
    assert response.json()["code"] == "PRODUCT_NOT_FOUND"
    assert sales_count(db) == 0


@pytest.mark.parametrize(
    "payload",
    [
        {"items": []},
        {"items": [{"productId": "8a1b6a52-1d3e-4e43-9b3c-0f3f1d2a7c11", "qty": 10**30}]},
        {"items": [{"productId": "not-a-uuid", "qty": 1}]},
        {"items": [{"productId": "8a1b6a52-1d3e-4e43-9b3c-0f3f1d2a7c11", "qty": 0}]},
        {"items": [{"productId": "8a1b6a52-1d3e-4e43-9b3c-0f3f1d2a7c11", "qty": 1}], "paymentMethod": "CARD"},
    ],
)
def test_malformed_requests_fail_validation(client, db, seller_headers, payload):
    response = client.post("/sales:checkout", json=payload, headers=seller_headers)

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"
    assert sales_count(db) == 0


def test_checkout_requires_authentication(client, db):
    product = make_product(db, stock=5)

    response = post_checkout(client, {}, [{"productId": product["id"], "qty": 1}])

    assert response.status_code == 401
    assert response.json()["code"] == "UNAUTHORIZED"
    assert stock(db, product["id"]) == 5


def test_total_is_sum_of_rounded_line_totals(client, db, seller_headers):
    gum = make_product(db, name="Chicle", price=0.35, stock=10)
    snack = make_product(db, name="Mani", price=19.99, stock=10)

    response = post_checkout(
        client,
        seller_headers,
        [{"productId": gum["id"], "qty": 3}, {"productId": snack["id"], "qty": 2}],
    )

    assert response.status_code == 201
    assert response.json()["total"] == pytest.approx(41.03)
    detail = client.get(f"/sales/{response.json()['saleId']}", headers=seller_headers).json()
    line_sum = sum(round2(item["line_total"]) for item in detail["items"])
    assert line_sum == round2(detail["total"]) == Decimal("41.03")


def test_zero_total_with_items_is_an_integrity_error(client, db, seller_headers):
    freebie = make_product(db, name="Bolsa", price=0, stock=4)

    response = post_checkout(client, seller_headers, [{"productId": freebie["id"], "qty": 1}])

    assert response.status_code == 500
    body = response.json()
    assert body["code"] == "TOTAL_ZERO_WITH_ITEMS"
    assert body["details"] is None
    assert stock(db, freebie["id"]) == 4
    assert sales_count(db) == 0


def test_repeated_checkouts_never_oversell(client, db, seller_headers):
    product = make_product(db, stock=5)
    line = [{"productId": product["id"], "qty": 2}]

    statuses = [post_checkout(client, seller_headers, line).status_code for _ in range(3)]

    assert statuses == [201, 201, 409]
    assert stock(db, product["id"]) == 1
    assert sales_count(db) == 2


def test_concurrent_checkouts_sell_at_most_available_stock(session_factory, db, seller):
    product = make_product(db, stock=5)

    def attempt(_):
        with session_factory() as session:
            try:
                checkout(session, [CheckoutLine(product["id"], 1)], PaymentMethod.CASH, seller["id"])
            except InsufficientStock:
                return False
            return True

    with ThreadPoolExecutor(max_workers=4) as pool:
        results = list(pool.map(attempt, range(8)))

    assert results.count(True) == 5
    assert results.count(False) == 3
    assert stock(db, product["id"]) == 0
    sold = db.execute(text("SELECT COALESCE(SUM(qty), 0) FROM sale_items")).scalar_one()
    assert sold == 5


def test_group_lines_sums_and_sorts_by_product():
    lines = [CheckoutLine("b", 1), CheckoutLine("a", 2), CheckoutLine("b", 4)]

    assert list(group_lines(lines).items()) == [("a", 2), ("b", 5)]


def test_checkout_service_rejects_empty_cart(db, seller):
    with pytest.raises(ValueError):
        checkout(db, [], PaymentMethod.CASH, seller["id"])


@pytest.mark.parametrize(
    "value, expected",
    [
        (Decimal("0.125"), Decimal("0.13")),
        (Decimal("2.675"), Decimal("2.68")),
        (1.005, Decimal("1.01")),
        (3000, Decimal("3000.00")),
    ],
)
def test_round2_rounds_half_up(value, expected):
    assert round2(value) == expected
