"""Enrichment orchestrator: drives pending items through LLM inference."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from tenacity import RetryCallState, Retrying, retry_if_exception, stop_after_attempt, wait_fixed

from config import EnrichmentConfig
from db import CatalogStore, enrichment_to_fields, now_utc
from enrichment.models import EnrichmentRecord
from enrichment.rules import (
    is_rate_limited,
    parse_weight_grams,
    price_per_gram,
    value_score_from_price_per_gram,
)
from models import Item, ItemStatus, StockStatus, transition

logger = logging.getLogger(__name__)


class Inferer(Protocol):
    def infer(self, description: str, price: str) -> dict | None:
        """Return the raw structured record, or None on a malformed reply."""


@dataclass
class RetryPolicy:
    """Bounded retry for throttled inference calls.

    Only failures accepted by `should_retry` are retried; anything else is
    re-raised on the first attempt.
    """

    max_attempts: int = 2
    backoff_seconds: float = 120.0
    sleep: Callable[[float], None] = time.sleep
    should_retry: Callable[[BaseException], bool] = is_rate_limited

    @classmethod
    def from_config(cls, config: EnrichmentConfig, sleep: Callable[[float], None] = time.sleep):
        return cls(
            max_attempts=config.max_attempts,
            backoff_seconds=config.backoff_seconds,
            sleep=sleep,
        )

    def call(self, fn, *args, on_backoff: Optional[Callable[[RetryCallState], None]] = None, **kwargs):
        def before_sleep(state: RetryCallState):
            exc = state.outcome.exception() if state.outcome else None
            logger.warning(
                f"Rate limited (attempt {state.attempt_number}/{self.max_attempts}): {exc}. "
                f"Backing off {self.backoff_seconds:.0f}s"
            )
            if on_backoff:
                on_backoff(state)

        retryer = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_fixed(self.backoff_seconds),
            retry=retry_if_exception(self.should_retry),
            sleep=self.sleep,
            before_sleep=before_sleep,
            reraise=True,
        )
        return retryer(fn, *args, **kwargs)


@dataclass
class EnrichmentSummary:
    processed: int = 0
    completed: int = 0
    skipped: int = 0
    errored: int = 0
    no_description: int = 0
    rate_limited: int = 0

    def __str__(self) -> str:
        return (
            f"{self.completed}/{self.processed} completed, {self.skipped} skipped (sold out), "
            f"{self.errored} errors, {self.no_description} without description, "
            f"{self.rate_limited} rate-limit backoffs"
        )


def _price_text(item: Item) -> str:
    if item.price is None:
        return ""
    text = f"{item.price} {item.currency}".strip()
    if item.weight_label:
        text += f" ({item.weight_label})"
    return text


class EnrichmentEngine:
    """Moves Pending items to Completed, Skipped or Error, one row at a time.

    Processes items in store order and stops after `batch_size` inference
    calls, so it is meant to be run repeatedly until the backlog drains.
    """

    def __init__(
        self,
        store: CatalogStore,
        inferer: Inferer,
        config: EnrichmentConfig,
        retry_policy: Optional[RetryPolicy] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.store = store
        self.inferer = inferer
        self.config = config
        self.retry_policy = retry_policy or RetryPolicy.from_config(config, sleep=sleep)
        self.sleep = sleep
        self.clock = clock

    def run(self) -> EnrichmentSummary:
        summary = EnrichmentSummary()
        for item in self.store.list_all():
            if item.status != ItemStatus.PENDING:
                continue
            if self.config.batch_size and summary.processed >= self.config.batch_size:
                logger.info(f"[enrich] Batch cap of {self.config.batch_size} reached")
                break
            self.enrich_item(item, summary)

        logger.info(f"=== Enrichment done: {summary} ===")
        return summary

    def enrich_item(self, item: Item, summary: EnrichmentSummary):
        if item.stock_status == StockStatus.SOLD_OUT:
            self._set_status(item, ItemStatus.SKIPPED)
            summary.skipped += 1
            logger.info(f"  [{item.shop}] {item.name}: sold out, skipped")
            return

        if not item.description.strip():
            # Stays Pending until a description shows up
            summary.no_description += 1
            logger.debug(f"  [{item.shop}] {item.name}: no description, left pending")
            return

        summary.processed += 1

        def count_backoff(_state):
            summary.rate_limited += 1

        try:
            data = self.retry_policy.call(
                self.inferer.infer, item.description, _price_text(item),
                on_backoff=count_backoff,
            )
            record = self.build_record(item, data)
        except Exception as e:
            logger.warning(f"  [{item.shop}] {item.name}: enrichment failed: {e}")
            self._set_status(item, ItemStatus.ERROR)
            summary.errored += 1
            return

        fields = enrichment_to_fields(record)
        fields["status"] = transition(item.status, ItemStatus.COMPLETED)
        fields["enriched_at"] = self.clock()
        if item.weight_grams is None and record.weight_grams:
            fields["weight_grams"] = record.weight_grams
        self.store.update_fields(item.id, fields)
        item.status = ItemStatus.COMPLETED
        item.enrichment = record
        summary.completed += 1
        logger.info(
            f"  [{item.shop}] {item.name}: {record.variety or '?'} / {record.process or '?'} "
            f"(value {record.value_score})"
        )
        # Pace calls to the inference API
        self.sleep(self.config.pace_seconds)

    @staticmethod
    def build_record(item: Item, data: dict | None) -> EnrichmentRecord:
        """Normalize the response and fill derived fields.

        Weight comes from the item first, then the feed's size label, then the
        model. Price per gram is recomputed locally whenever a weight is known,
        and the value score falls back to price-per-gram banding.
        """
        record = EnrichmentRecord.from_response(data)
        weight = item.weight_grams or parse_weight_grams(item.weight_label) or record.weight_grams
        ppg = price_per_gram(item.price, weight)
        if ppg is None:
            ppg = record.price_per_gram
        value = record.value_score
        if value is None:
            value = value_score_from_price_per_gram(ppg)
        return record.model_copy(update={
            "weight_grams": weight,
            "price_per_gram": ppg,
            "value_score": value,
        })

    def _set_status(self, item: Item, target: ItemStatus):
        status = transition(item.status, target)
        self.store.update_fields(item.id, {"status": status})
        item.status = status


def reset_to_pending(store: CatalogStore, include_skipped: bool = False) -> int:
    """Operator reset: move Error (and optionally Skipped) items back to Pending."""
    sources = {ItemStatus.ERROR}
    if include_skipped:
        sources.add(ItemStatus.SKIPPED)

    count = 0
    for item in store.list_all():
        if item.status not in sources:
            continue
        status = transition(item.status, ItemStatus.PENDING, manual=True)
        fields = enrichment_to_fields(None)
        fields["status"] = status
        store.update_fields(item.id, fields)
        count += 1
    logger.info(f"Reset {count} items to {ItemStatus.PENDING.value}")
    return count
