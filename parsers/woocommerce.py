"""Adapter for WooCommerce storefronts (Store API)."""

import logging
from decimal import Decimal
from typing import Optional

from models import CandidateRecord, StockStatus
from parsers.base import ShopAdapter

logger = logging.getLogger(__name__)

PER_PAGE = 100


class WooCommerceAdapter(ShopAdapter):
    """
    GET /wp-json/wc/store/v1/products?category={slug}&per_page=100&page=N
    Price: prices.price in minor units (prices.currency_minor_unit)
    Stock: is_in_stock
    Description: description, else short_description (HTML)
    """

    def fetch_page(self, page_num: int) -> list[dict]:
        params = {"per_page": PER_PAGE, "page": page_num}
        if self.shop.get("category"):
            params["category"] = self.shop["category"]
        data = self.fetch_json("/wp-json/wc/store/v1/products", params=params)
        return data if isinstance(data, list) else []

    def item_tags(self, raw: dict) -> list[str]:
        tags = []
        for group in ("categories", "tags"):
            for entry in raw.get(group) or []:
                tags.append(entry.get("name") or "")
                tags.append(entry.get("slug") or "")
        return tags

    def parse_item(self, raw: dict) -> Optional[CandidateRecord]:
        name = self.html_to_text(raw.get("name"))
        if not name:
            return None

        return CandidateRecord(
            shop=self.shop_name,
            name=name,
            price=self._price(raw.get("prices") or {}),
            currency=(raw.get("prices") or {}).get("currency_code") or self.currency,
            stock_status=StockStatus.IN_STOCK if raw.get("is_in_stock") else StockStatus.SOLD_OUT,
            description=self.html_to_text(raw.get("description") or raw.get("short_description")),
            url=raw.get("permalink"),
            roast_date=None,
            weight_label=self._weight_label(raw),
        )

    @staticmethod
    def _price(prices: dict) -> Optional[Decimal]:
        raw = prices.get("price")
        if raw in (None, ""):
            return None
        minor = int(prices.get("currency_minor_unit", 2))
        return Decimal(str(raw)) / (Decimal(10) ** minor)

    @staticmethod
    def _weight_label(raw: dict) -> Optional[str]:
        for attr in raw.get("attributes") or []:
            label = (attr.get("name") or "").lower()
            if "size" in label or "weight" in label:
                terms = attr.get("terms") or []
                if terms:
                    return terms[0].get("name")
        return None
