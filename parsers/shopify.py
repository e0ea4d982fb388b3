"""Adapter for Shopify storefronts (public /products.json feed)."""

import logging
from typing import Optional

from enrichment.rules import parse_price, parse_weight_grams
from models import CandidateRecord, StockStatus
from parsers.base import ShopAdapter

logger = logging.getLogger(__name__)

PAGE_LIMIT = 250


class ShopifyAdapter(ShopAdapter):
    """
    GET {collection}/products.json?limit=250&page=N
    Name: product.title
    Price/stock/size: first available variant (else first variant)
    Description: body_html
    URL: /products/{handle}
    """

    def fetch_page(self, page_num: int) -> list[dict]:
        collection = self.shop.get("collection", "")
        data = self.fetch_json(
            f"{collection}/products.json", params={"limit": PAGE_LIMIT, "page": page_num}
        )
        if not isinstance(data, dict):
            return []
        return data.get("products") or []

    def item_tags(self, raw: dict) -> list[str]:
        tags = raw.get("tags") or []
        if isinstance(tags, str):
            tags = tags.split(",")
        product_type = raw.get("product_type")
        return [*tags, product_type] if product_type else list(tags)

    def parse_item(self, raw: dict) -> Optional[CandidateRecord]:
        name = (raw.get("title") or "").strip()
        if not name:
            return None

        variants = raw.get("variants") or []
        available = [v for v in variants if v.get("available")]
        variant = (available or variants or [{}])[0]

        return CandidateRecord(
            shop=self.shop_name,
            name=name,
            price=parse_price(variant.get("price")),
            currency=self.currency,
            stock_status=StockStatus.IN_STOCK if available else StockStatus.SOLD_OUT,
            description=self.html_to_text(raw.get("body_html")),
            url=f"{self.base_url.rstrip('/')}/products/{raw['handle']}" if raw.get("handle") else None,
            roast_date=None,
            weight_label=self._weight_label(variant),
        )

    @staticmethod
    def _weight_label(variant: dict) -> Optional[str]:
        for key in ("title", "option1", "option2"):
            text = variant.get(key)
            if text and parse_weight_grams(text) is not None:
                return text
        grams = variant.get("grams")
        if grams:
            return f"{grams}g"
        return None
