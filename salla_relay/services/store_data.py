"""Live store data flattened into spreadsheet rows."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, List, Optional

from salla_relay.clients.salla_api import SallaApiClient
from salla_relay.core.errors import MalformedPayloadError, StoreDataUnavailableError
from salla_relay.services.token_store import TokenStore

logger = logging.getLogger(__name__)

RECONNECT_HINT = "Reconnect the store to refresh its authorization"


def _full_name(person: Any) -> Optional[str]:
    if not isinstance(person, dict):
        return None
    name = f"{person.get('first_name') or ''} {person.get('last_name') or ''}".strip()
    return name or None


def _obj(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _first(items: Any) -> Dict[str, Any]:
    if isinstance(items, list) and items:
        return _obj(items[0])
    return {}


def _number(value: Any) -> float:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return value
    return 0


def order_row(order: Dict[str, Any]) -> Dict[str, Any]:
    customer = _obj(order.get("customer"))
    receiver = _obj(order.get("receiver"))
    amounts = _obj(order.get("amounts"))
    items = [item for item in order.get("items") or [] if isinstance(item, dict)]
    total = amounts.get("total")
    if isinstance(total, dict):
        total = total.get("amount")
    shipment_company = _obj(_first(order.get("shipments")).get("company")).get("name")
    return {
        "order_id": order.get("id"),
        "order_number": order.get("reference_id"),
        "order_date": order.get("date"),
        "order_status": order.get("status"),
        "payment_method": order.get("payment_method"),
        "order_total": total or 0,
        "customer_name": _full_name(customer),
        "customer_phone_number": customer.get("mobile") or receiver.get("phone"),
        "shipping_city": receiver.get("city"),
        "shipping_address": receiver.get("street_address"),
        "shipping_company": shipment_company or "Not Assigned",
        "product_barcodes": ", ".join(str(item.get("sku")) for item in items) or None,
        "product_quantities": ", ".join(str(item.get("quantity")) for item in items) or None,
        "product_value": sum(
            _number(item.get("price")) * _number(item.get("quantity")) for item in items
        ),
    }


def product_row(product: Dict[str, Any]) -> Dict[str, Any]:
    metadata = _obj(product.get("metadata"))
    image = _first(product.get("images"))
    coupons = metadata.get("coupons")
    if not isinstance(coupons, list):
        coupons = []
    categories = [
        category.get("name")
        for category in product.get("categories") or []
        if isinstance(category, dict) and category.get("name")
    ]
    return {
        "product_id": product.get("id"),
        "product_code": product.get("sku"),
        "product_barcode": product.get("sku"),
        "product_mpn": metadata.get("mpn") or product.get("sku"),
        "product_name": product.get("name"),
        "product_description": product.get("description"),
        "product_image_link": image.get("url"),
        "vat_status": "VAT Included" if metadata.get("vat_included") else "VAT Excluded",
        "product_brand": _obj(product.get("brand")).get("name") or "No Brand",
        "product_meta_data": json.dumps(metadata),
        "product_alt_text": image.get("alt") or product.get("name"),
        "product_seo_data": metadata.get("seo_title") or product.get("name"),
        "price": product.get("price") or 0,
        "price_offer": product.get("sale_price") or product.get("price") or 0,
        "linked_coupons": ", ".join(str(coupon) for coupon in coupons) or "None",
        "categories": ", ".join(categories) or "Uncategorized",
        "current_stock_level": product.get("quantity") or 0,
        "total_sold_quantity": product.get("sold_quantity") or 0,
        "product_type": product.get("type"),
        "product_status": product.get("status"),
        "product_page_link": product.get("url"),
    }


def customer_row(customer: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "customer_id": customer.get("id"),
        "customer_name": _full_name(customer) or "Unknown",
        "customer_email": customer.get("email"),
        "customer_phone": customer.get("mobile"),
        "customer_city": customer.get("city"),
        "customer_country": customer.get("country"),
        "registration_date": customer.get("updated_at"),
    }


class StoreDataService:
    """Build the workbook payload the spreadsheet add-in imports."""

    def __init__(
        self,
        token_store: TokenStore,
        api_client: SallaApiClient,
        *,
        live_data_enabled: bool = True,
    ) -> None:
        self._tokens = token_store
        self._api = api_client
        self._live_data_enabled = live_data_enabled

    async def build_workbook(self, merchant_id: str) -> Dict[str, List[Dict[str, Any]]]:
        if not self._live_data_enabled:
            raise StoreDataUnavailableError("Live store data is disabled on this server")

        try:
            record = await self._tokens.fetch(merchant_id)
        except MalformedPayloadError as exc:
            raise StoreDataUnavailableError(RECONNECT_HINT) from exc
        if record is None:
            raise StoreDataUnavailableError(RECONNECT_HINT)

        orders, products, customers = await asyncio.gather(
            self._api.list_resource("orders", record.access_token),
            self._api.list_resource("products", record.access_token),
            self._api.list_resource("customers", record.access_token),
        )
        workbook = {
            "Orders": [order_row(order) for order in orders],
            "Products": [product_row(product) for product in products],
            "Customers": [customer_row(customer) for customer in customers],
        }
        workbook["Summary"] = [
            {
                "TotalOrders": len(workbook["Orders"]),
                "TotalProducts": len(workbook["Products"]),
                "TotalCustomers": len(workbook["Customers"]),
                "LastUpdated": self._tokens.now().isoformat(),
                "MerchantID": record.merchant_id,
                "DataSource": "Salla Admin API",
                "TokenExpires": record.expires_at.isoformat(),
            }
        ]
        logger.info(
            "Store data delivered for merchant %s (orders=%d, products=%d, customers=%d)",
            record.merchant_id,
            len(orders),
            len(products),
            len(customers),
        )
        return workbook


__all__ = [
    "RECONNECT_HINT",
    "StoreDataService",
    "customer_row",
    "order_row",
    "product_row",
]
