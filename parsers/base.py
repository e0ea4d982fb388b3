"""Base adapter for roaster storefronts exposing a JSON product feed."""

import logging
import time
from typing import Any, Iterable, Optional
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup

from config import (
    DEFAULT_CURRENCY,
    EXCLUDE_KEYWORDS,
    INCLUDE_NAME_KEYWORDS,
    INCLUDE_TAGS,
    MAX_PAGES,
    REQUEST_DELAY,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from enrichment.rules import parse_weight_grams
from models import CandidateRecord

logger = logging.getLogger(__name__)


class ShopAdapter:
    """Shared fetch and filtering logic for storefront adapters."""

    def __init__(self, shop: dict, session: Optional[requests.Session] = None,
                 delay: float = REQUEST_DELAY):
        self.shop = shop
        self.shop_name = shop["name"]
        self.base_url = shop["base_url"]
        self.currency = shop.get("currency", DEFAULT_CURRENCY)
        self.delay = delay
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
            "Accept-Language": "en-CA,en;q=0.9",
        })

    def fetch_json(self, path: str, params: Optional[dict] = None) -> Optional[Any]:
        """Fetch a JSON document, or None on error."""
        url = path if path.startswith("http") else urljoin(self.base_url, path)
        try:
            resp = self.session.get(url, params=params, timeout=REQUEST_TIMEOUT)
            resp.raise_for_status()
            time.sleep(self.delay)
            return resp.json()
        except requests.RequestException as e:
            logger.error(f"[{self.shop_name}] Failed to fetch {url}: {e}")
            return None
        except ValueError as e:
            logger.error(f"[{self.shop_name}] Invalid JSON from {url}: {e}")
            return None

    def fetch(self, max_pages: int = MAX_PAGES) -> list[CandidateRecord]:
        """Fetch every listing across pages and keep only coffee beans."""
        candidates = []
        for page_num in range(1, max_pages + 1):
            raw_items = self.fetch_page(page_num)
            if not raw_items:
                break
            page_candidates = []
            for raw in raw_items:
                try:
                    candidate = self.parse_item(raw)
                except (KeyError, TypeError, ValueError) as e:
                    logger.warning(f"[{self.shop_name}] Failed to parse item: {e}")
                    continue
                if candidate and self.looks_like_beans(candidate, self.item_tags(raw)):
                    page_candidates.append(candidate)
            candidates.extend(page_candidates)
            logger.info(
                f"[{self.shop_name}] Page {page_num}: {len(page_candidates)}/{len(raw_items)} beans"
            )
        return candidates

    def fetch_page(self, page_num: int) -> list[dict]:
        """Return the raw product dicts of one page. Override in subclasses."""
        raise NotImplementedError

    def parse_item(self, raw: dict) -> Optional[CandidateRecord]:
        """Normalize one raw product. Override in subclasses."""
        raise NotImplementedError

    def item_tags(self, raw: dict) -> list[str]:
        return []

    # --- Shared helpers ---

    @staticmethod
    def looks_like_beans(candidate: CandidateRecord, tags: Iterable[str] = ()) -> bool:
        """Keyword heuristic separating beans from gear, merch and services."""
        name = candidate.name.lower()
        if any(kw in name for kw in EXCLUDE_KEYWORDS):
            return False
        lowered_tags = {t.strip().lower() for t in tags if t}
        if any(tag in lowered_tags for tag in INCLUDE_TAGS):
            return True
        if any(kw in name for kw in INCLUDE_NAME_KEYWORDS):
            return True
        return parse_weight_grams(candidate.weight_label or candidate.name) is not None

    @staticmethod
    def html_to_text(html: Optional[str]) -> str:
        if not html:
            return ""
        return BeautifulSoup(html, "lxml").get_text(" ", strip=True)
