"""Report generation for selected beans, with a local fallback."""

import json
import logging
from typing import Optional

from enrichment.llm import AnthropicClient, parse_json_response
from scoring import BUCKETS, ESPRESSO, FILTER

logger = logging.getLogger(__name__)

LLM_ATTEMPTS = 2  # first call plus one retry on malformed output

_BUCKET_LABELS = {
    "en": {FILTER: "Filter picks", ESPRESSO: "Espresso picks"},
    "zh": {FILTER: "手冲推荐", ESPRESSO: "意式推荐"},
}
_TITLES = {
    "en": "Bean picks for {date}",
    "zh": "{date} 本期咖啡豆推荐",
}
_EMPTY = {
    "en": "No picks this time.",
    "zh": "本期暂无推荐。",
}

_PICKER_PROMPT = """You are choosing coffee beans to feature in a newsletter.
For each bucket pick exactly {count} beans (fewer only if the bucket has fewer
candidates) from the shortlist below. Prefer rare or seasonally prime beans,
then prefer beans from different shops, then higher score. Never pick the
same id twice.

Shortlists (JSON):
{shortlists}

Respond with JSON only:
{{"picks": {{"filter": [ids], "espresso": [ids]}}, "rationale": "one short paragraph"}}"""

_REPORT_PROMPT = """Write a short coffee bean recommendation post for {date}
in each of these languages: {languages}.

Selected beans by bucket (JSON):
{picks}

For every bean mention the shop, price, origin, process and flavor notes in
one or two sentences. Respond with JSON only, keyed by language code:
{{"en": {{"title": "...", "body": "..."}}, "zh": {{"title": "...", "body": "..."}}}}"""


class AnthropicPicker:
    """AI-assisted pick of final beans from per-bucket shortlists."""

    def __init__(self, client: AnthropicClient):
        self.client = client

    def pick(self, shortlists: dict[str, list[dict]], picks_per_bucket: int) -> Optional[dict]:
        prompt = _PICKER_PROMPT.format(
            count=picks_per_bucket,
            shortlists=json.dumps(shortlists, ensure_ascii=False, indent=1),
        )
        data = parse_json_response(self.client.complete(prompt))
        return data if isinstance(data, dict) else None


def _format_line(entry: dict) -> str:
    price = entry.get("price")
    price_text = f"{price} {entry.get('currency') or ''}".strip() if price else "price n/a"
    details = " / ".join(
        v for v in (entry.get("variety"), entry.get("process"), entry.get("roast_level")) if v
    )
    line = f"- {entry['name']} ({entry['shop']}), {price_text}"
    if details:
        line += f": {details}"
    if entry.get("flavor_notes"):
        line += f" [{entry['flavor_notes']}]"
    return line


def build_local_report(
    picks: dict[str, list[dict]], date: str, languages: tuple[str, ...]
) -> dict[str, dict[str, str]]:
    """Deterministic plain-text report used when the LLM is unavailable."""
    report = {}
    for lang in languages:
        labels = _BUCKET_LABELS.get(lang, _BUCKET_LABELS["en"])
        sections = []
        for bucket in BUCKETS:
            entries = picks.get(bucket, [])
            if not entries:
                continue
            lines = [labels[bucket]] + [_format_line(e) for e in entries]
            sections.append("\n".join(lines))
        body = "\n\n".join(sections) or _EMPTY.get(lang, _EMPTY["en"])
        title = _TITLES.get(lang, _TITLES["en"]).format(date=date)
        report[lang] = {"title": title, "body": body}
    return report


def _validate_report(data, languages: tuple[str, ...]) -> Optional[dict[str, dict[str, str]]]:
    if not isinstance(data, dict):
        return None
    report = {}
    for lang in languages:
        entry = data.get(lang)
        if not isinstance(entry, dict):
            return None
        title, body = entry.get("title"), entry.get("body")
        if not isinstance(title, str) or not isinstance(body, str) or not title or not body:
            return None
        report[lang] = {"title": title.strip(), "body": body.strip()}
    return report


class ReportWriter:
    """Turns selected picks into per-language {title, body} artifacts."""

    def __init__(self, client: Optional[AnthropicClient], languages: tuple[str, ...] = ("en", "zh")):
        self.client = client
        self.languages = languages

    def generate_report(self, picks: dict[str, list[dict]], date: str) -> dict[str, dict[str, str]]:
        if self.client is None:
            return build_local_report(picks, date, self.languages)

        prompt = _REPORT_PROMPT.format(
            date=date,
            languages=", ".join(self.languages),
            picks=json.dumps(picks, ensure_ascii=False, indent=1),
        )
        for attempt in range(1, LLM_ATTEMPTS + 1):
            try:
                text = self.client.complete(prompt)
            except Exception as e:
                logger.warning(f"[report] Generation failed (attempt {attempt}): {e}")
                continue
            report = _validate_report(parse_json_response(text), self.languages)
            if report is not None:
                return report
            logger.warning(f"[report] Malformed report output (attempt {attempt})")

        logger.info("[report] Falling back to local report")
        return build_local_report(picks, date, self.languages)
