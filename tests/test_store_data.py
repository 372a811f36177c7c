try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from datetime import timedelta

import httpx
import pytest

from salla_relay.clients import SallaApiClient
from salla_relay.core.config import SallaSettings
from salla_relay.core.errors import StoreDataUnavailableError
from salla_relay.schemas import TokenGrant
from salla_relay.services import StoreDataService, TokenStore
from salla_relay.services.store_data import customer_row, order_row, product_row

pytestmark = pytest.mark.anyio

MERCHANT = "693104445"

ORDER = {
    "id": 11,
    "reference_id": 7001,
    "date": "2025-06-01",
    "status": "completed",
    "payment_method": "mada",
    "amounts": {"total": {"amount": 230, "currency": "SAR"}},
    "customer": {"first_name": "Sara", "last_name": "Ali", "mobile": "+966500000000"},
    "receiver": {"city": "Riyadh", "street_address": "King Fahd Rd"},
    "shipments": [{"company": {"name": "Aramex"}}],
    "items": [
        {"sku": "TS-1", "quantity": 2, "price": 50},
        {"sku": "JN-2", "quantity": 1, "price": 130},
    ],
}
PRODUCT = {
    "id": 21,
    "sku": "TS-1",
    "name": "Premium T-Shirt",
    "price": 50,
    "sale_price": 45,
    "quantity": 12,
    "images": [{"url": "https://cdn.example/ts.jpg", "alt": "T-Shirt"}],
    "categories": [{"name": "Clothing"}, {"name": "Summer"}],
    "metadata": {"vat_included": True, "coupons": ["SUMMER10"]},
}
CUSTOMER = {
    "id": 31,
    "first_name": "Sara",
    "last_name": "Ali",
    "email": "sara@example.com",
    "mobile": "+966500000000",
    "city": "Riyadh",
    "country": "SA",
}


def _settings(**overrides) -> SallaSettings:
    values = {"api_base_url": "https://api.salla.test/admin/v2/", "api_timeout_seconds": 1.0}
    values.update(overrides)
    return SallaSettings(**values)


def _mock_transport(calls: list[httpx.Request]) -> httpx.MockTransport:
    payloads = {"orders": [ORDER], "products": [PRODUCT], "customers": [CUSTOMER]}

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        resource = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={"status": 200, "data": payloads[resource]})

    return httpx.MockTransport(handler)


@pytest.fixture
async def token_store(sqlite_backend, clock) -> TokenStore:
    store = TokenStore(sqlite_backend, clock=clock)
    await store.upsert(
        MERCHANT,
        TokenGrant(
            access_token="tok1",
            expires=int((clock() + timedelta(days=14)).timestamp()),
            scope="orders.read products.read customers.read",
        ),
    )
    return store


async def test_client_sends_bearer_token_with_page_size() -> None:
    calls: list[httpx.Request] = []
    client = SallaApiClient(_settings(), transport=_mock_transport(calls))

    orders = await client.list_resource("orders", "tok1")

    assert orders == [ORDER]
    request = calls[0]
    assert str(request.url) == "https://api.salla.test/admin/v2/orders?per_page=20"
    assert request.headers["authorization"] == "Bearer tok1"
    assert request.headers["accept"] == "application/json"


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(401, json={"error": "Unauthorized"}),
        httpx.Response(200, content=b"<html>"),
        httpx.Response(200, json={"status": 200}),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
async def test_client_degrades_to_empty_list(response: httpx.Response) -> None:
    client = SallaApiClient(_settings(), transport=httpx.MockTransport(lambda request: response))

    assert await client.list_resource("orders", "tok1") == []


async def test_client_degrades_on_timeout() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = SallaApiClient(_settings(), transport=httpx.MockTransport(handler))

    assert await client.list_resource("products", "tok1") == []


async def test_client_degrades_on_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = SallaApiClient(_settings(), transport=httpx.MockTransport(handler))

    assert await client.list_resource("customers", "tok1") == []


async def test_workbook_maps_rows(token_store: TokenStore) -> None:
    calls: list[httpx.Request] = []
    service = StoreDataService(
        token_store, SallaApiClient(_settings(), transport=_mock_transport(calls))
    )

    workbook = await service.build_workbook(MERCHANT)

    assert len(calls) == 3
    assert workbook["Orders"] == [order_row(ORDER)]
    assert workbook["Products"] == [product_row(PRODUCT)]
    assert workbook["Customers"] == [customer_row(CUSTOMER)]
    summary = workbook["Summary"][0]
    assert summary["TotalOrders"] == 1
    assert summary["MerchantID"] == MERCHANT
    assert "tok1" not in json.dumps(workbook)


async def test_order_row_fields() -> None:
    row = order_row(ORDER)

    assert row["order_total"] == 230
    assert row["customer_name"] == "Sara Ali"
    assert row["shipping_company"] == "Aramex"
    assert row["product_barcodes"] == "TS-1, JN-2"
    assert row["product_quantities"] == "2, 1"
    assert row["product_value"] == 230


async def test_sparse_records_get_defaults() -> None:
    order = order_row({"id": 1})
    product = product_row({"id": 2})
    customer = customer_row({"id": 3})

    assert order["shipping_company"] == "Not Assigned"
    assert order["product_value"] == 0
    assert product["categories"] == "Uncategorized"
    assert product["product_brand"] == "No Brand"
    assert product["linked_coupons"] == "None"
    assert product["vat_status"] == "VAT Excluded"
    assert customer["customer_name"] == "Unknown"


async def test_workbook_without_token_is_unavailable(sqlite_backend, clock) -> None:
    calls: list[httpx.Request] = []
    service = StoreDataService(
        TokenStore(sqlite_backend, clock=clock),
        SallaApiClient(_settings(), transport=_mock_transport(calls)),
    )

    with pytest.raises(StoreDataUnavailableError):
        await service.build_workbook(MERCHANT)
    assert calls == []


async def test_workbook_disabled_never_calls_upstream(token_store: TokenStore) -> None:
    calls: list[httpx.Request] = []
    service = StoreDataService(
        token_store,
        SallaApiClient(_settings(), transport=_mock_transport(calls)),
        live_data_enabled=False,
    )

    with pytest.raises(StoreDataUnavailableError):
        await service.build_workbook(MERCHANT)
    assert calls == []


async def test_unexpected_nested_shapes_fall_back_to_defaults() -> None:
    order = order_row(
        {
            "id": 1,
            "customer": "Sara Ali",
            "receiver": None,
            "amounts": ["230"],
            "shipments": [{"company": "Aramex"}],
            "items": [{"sku": "TS-1", "quantity": "2", "price": 50}, "JN-2"],
        }
    )
    product = product_row(
        {
            "id": 2,
            "brand": "Nike",
            "metadata": "vat",
            "images": ["https://cdn.example/ts.jpg"],
        }
    )

    assert order["shipping_company"] == "Not Assigned"
    assert order["customer_name"] is None
    assert order["shipping_city"] is None
    assert order["order_total"] == 0
    assert order["product_value"] == 0
    assert product["product_brand"] == "No Brand"
    assert product["vat_status"] == "VAT Excluded"
    assert product["product_image_link"] is None
    assert product["linked_coupons"] == "None"


async def test_workbook_survives_unexpected_nested_shapes(sqlite_backend, clock) -> None:
    store = TokenStore(sqlite_backend, clock=clock)
    await store.upsert(
        MERCHANT,
        TokenGrant(
            access_token="tok1",
            expires=int((clock() + timedelta(days=14)).timestamp()),
            scope="orders.read",
        ),
    )
    odd = {
        "orders": [{"id": 1, "shipments": [{"company": "Aramex"}]}],
        "products": [{"id": 2, "brand": "Nike"}],
        "customers": [{"id": 3}],
    }

    def handler(request: httpx.Request) -> httpx.Response:
        resource = request.url.path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={"data": odd[resource]})

    service = StoreDataService(
        store, SallaApiClient(_settings(), transport=httpx.MockTransport(handler))
    )

    workbook = await service.build_workbook(MERCHANT)

    assert workbook["Orders"][0]["shipping_company"] == "Not Assigned"
    assert workbook["Products"][0]["product_brand"] == "No Brand"
