#!/usr/bin/env python3
"""Main entry point for the bean scout pipeline."""

import argparse
import logging
import sys
from datetime import datetime
from typing import Callable, Optional

from dotenv import load_dotenv
load_dotenv()

from config import SHOPS, ConfigError, PipelineConfig, load_config
from db import CatalogStore, now_utc
from enrichment.enricher import EnrichmentEngine, Inferer, reset_to_pending
from enrichment.llm import AnthropicClient, AnthropicInferer
from models import CandidateRecord
from parsers import PARSERS
from publisher import PublishSink, SqliteArtifactSink, TelegramSink, publish_report
from reporter import AnthropicPicker, ReportWriter
from scoring import BUCKETS, ScoringEngine
from selection import SelectionEngine, SelectionResult, mark_selected
from sync import SyncEngine, SyncResult

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def fetch_shop(shop_name: str) -> list[CandidateRecord]:
    """Fetch and normalize all bean listings of one shop."""
    if shop_name not in SHOPS:
        logger.error(f"Unknown shop: {shop_name}")
        return []

    shop = SHOPS[shop_name]
    adapter_class = PARSERS.get(shop["platform"])
    if not adapter_class:
        logger.error(f"No adapter for platform: {shop['platform']}")
        return []

    logger.info(f"--- Fetching {shop['display_name']} ({shop_name}) ---")
    candidates = adapter_class(shop).fetch()
    logger.info(f"  Found {len(candidates)} beans")
    return candidates


def sync_shops(store: CatalogStore, shop_names: Optional[list[str]] = None) -> SyncResult:
    """Fetch the given shops (default all) and reconcile them into the catalog."""
    engine = SyncEngine(store)
    total = SyncResult()
    for shop_name in shop_names or list(SHOPS):
        try:
            candidates = fetch_shop(shop_name)
            if not candidates:
                continue
            result = engine.sync(candidates)
        except Exception as e:
            logger.error(f"[sync] Failed for shop {shop_name}: {e}")
            continue
        total.inserted += result.inserted
        total.updated += result.updated
        total.changes.extend(result.changes)

    for change in total.changes:
        c = change.candidate
        if change.change_type == "new":
            logger.info(f"  NEW: [{c.shop}] {c.name} ({c.price or '?'} {c.currency})")
        elif change.change_type == "price":
            logger.info(f"  PRICE: [{c.shop}] {c.name} {change.old_value} -> {change.new_value}")
        elif change.change_type == "restock":
            logger.info(f"  RESTOCK: [{c.shop}] {c.name}")
        elif change.change_type == "soldout":
            logger.info(f"  SOLDOUT: [{c.shop}] {c.name}")

    logger.info(f"=== Sync done: {total.inserted} inserted, {total.updated} updated ===")
    return total


def enrich_pending(store: CatalogStore, config: PipelineConfig, inferer: Optional[Inferer] = None):
    if inferer is None:
        config.require_credentials(needs_llm=True)
        client = AnthropicClient(config.anthropic_api_key, config.enrichment.model)
        inferer = AnthropicInferer(client)
    engine = EnrichmentEngine(store, inferer, config.enrichment)
    return engine.run()


def build_sink(store: CatalogStore, config: PipelineConfig) -> PublishSink:
    archive = SqliteArtifactSink(store.conn)
    if config.publish_sink == "telegram":
        return TelegramSink(config.telegram_bot_token, config.telegram_chat_id, archive)
    return archive


def select_and_publish(
    store: CatalogStore,
    config: PipelineConfig,
    *,
    dry_run: bool = False,
    local_report: bool = False,
    sink: Optional[PublishSink] = None,
    writer: Optional[ReportWriter] = None,
    picker=None,
    clock: Callable[[], datetime] = now_utc,
) -> SelectionResult:
    """Score, select, generate and publish; cooldown is written only after publishing."""
    wants_picker = config.selection.use_ai_picker and picker is None
    needs_llm = not local_report and (writer is None or wants_picker)
    config.require_credentials(needs_llm=needs_llm)

    if needs_llm:
        if writer is None:
            writer = ReportWriter(
                AnthropicClient(config.anthropic_api_key, config.report_model), config.languages
            )
        if wants_picker:
            picker = AnthropicPicker(
                AnthropicClient(config.anthropic_api_key, config.selection.model)
            )
    if writer is None:
        writer = ReportWriter(None, config.languages)

    engine = SelectionEngine(config.selection, ScoringEngine(config.weights), clock=clock, picker=picker)
    result = engine.select(store.list_all())
    if result.empty:
        logger.info("=== Selection done: nothing to publish ===")
        return result
    if result.degraded:
        logger.warning(f"[select] Partial result: {result.shortfalls}")

    now = clock()
    date = now.date().isoformat()
    picks_payload = {b: [p.to_dict() for p in result.picks.get(b, [])] for b in BUCKETS}
    report = writer.generate_report(picks_payload, date)

    if dry_run:
        for language, content in report.items():
            logger.info(f"[dry-run] {language}: {content['title']}\n{content['body']}")
        return result

    sink = sink or build_sink(store, config)
    if not publish_report(sink, report, date):
        logger.error("[publish] Publishing failed; selection not recorded")
        return result

    marked = mark_selected(store, result, now)
    logger.info(f"=== Selection done: {result.summary()}, {marked} items marked selected ===")
    return result


def show_stats(store: CatalogStore) -> dict[str, int]:
    stats = store.status_counts()
    logger.info(
        "Catalog: {total} beans, {analyzed} analyzed, {unanalyzed} not analyzed, "
        "{in_stock} in stock, {sold_out} sold out "
        "(pending={pending}, skipped={skipped}, error={error})".format(**stats)
    )
    return stats


def main():
    parser = argparse.ArgumentParser(description="Coffee bean scout")
    parser.add_argument("--sync", action="store_true", help="Fetch shops and sync the catalog")
    parser.add_argument("--shop", type=str, help="Sync a single shop (e.g., pallet)")
    parser.add_argument("--enrich", action="store_true", help="Enrich pending items")
    parser.add_argument("--select", action="store_true", help="Select picks and publish")
    parser.add_argument("--dry-run", action="store_true", help="Select without publishing or writeback")
    parser.add_argument("--local-report", action="store_true", help="Skip the LLM for report text")
    parser.add_argument("--reset-errors", action="store_true", help="Move Error items back to Pending")
    parser.add_argument("--include-skipped", action="store_true", help="With --reset-errors, reset Skipped too")
    parser.add_argument("--stats", action="store_true", help="Show catalog statistics")
    parser.add_argument("--once", action="store_true", help="Sync, enrich and select once, then exit")
    args = parser.parse_args()

    try:
        config = load_config()
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    store = CatalogStore.open(config.db_path)
    try:
        if args.reset_errors:
            reset_to_pending(store, include_skipped=args.include_skipped)
        elif args.stats:
            show_stats(store)
        elif args.sync or args.shop:
            sync_shops(store, [args.shop] if args.shop else None)
        elif args.enrich:
            enrich_pending(store, config)
        elif args.select:
            select_and_publish(store, config, dry_run=args.dry_run, local_report=args.local_report)
        elif args.once:
            config.require_credentials(needs_llm=True)
            sync_shops(store)
            enrich_pending(store, config)
            select_and_publish(store, config, dry_run=args.dry_run, local_report=args.local_report)
        else:
            from scheduler import run_scheduler
            run_scheduler(config)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)
    finally:
        store.close()


if __name__ == "__main__":
    main()
