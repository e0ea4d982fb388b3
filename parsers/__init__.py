"""Storefront adapters for roaster shops."""

from parsers.shopify import ShopifyAdapter
from parsers.woocommerce import WooCommerceAdapter

PARSERS = {
    "shopify": ShopifyAdapter,
    "woocommerce": WooCommerceAdapter,
}
