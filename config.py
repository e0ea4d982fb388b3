"""Shop configurations and pipeline settings for the bean scout."""

import os
from dataclasses import dataclass, field

REQUEST_DELAY = 1.5  # seconds between requests
REQUEST_TIMEOUT = 15  # seconds
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)
MAX_PAGES = 5  # max pages to fetch per shop
SYNC_INTERVAL_MINUTES = 60
SELECT_HOUR = 8  # daily selection run, local time
DB_PATH = "beans.db"
DEFAULT_CURRENCY = "CAD"

# AI enrichment settings
ENRICHMENT_MODEL = "claude-sonnet-4-5-20250929"
SELECTION_MODEL = "claude-sonnet-4-5-20250929"
REPORT_MODEL = "claude-sonnet-4-5-20250929"
ENRICH_BATCH_SIZE = 10  # items per run, 0 = no cap
ENRICH_PACE_SECONDS = 2.0  # after every successful write
RATE_LIMIT_BACKOFF_SECONDS = 120.0
RATE_LIMIT_MAX_ATTEMPTS = 2

# Selection settings
FRESHNESS_DAYS = 7
COOLDOWN_DAYS = 14
SHORTLIST_SIZE = 5
PICKS_PER_BUCKET = 2

REPORT_LANGUAGES = ("en", "zh")

# Source filtering heuristic
EXCLUDE_KEYWORDS = (
    "gift card", "subscription", "grinder", "kettle", "dripper", "filter paper",
    "mug", "tumbler", "scale", "workshop", "class", "merch", "t-shirt",
    "tote", "capsule", "pod", "cold brew can", "sample pack",
)
INCLUDE_TAGS = ("coffee", "beans", "single origin", "espresso", "filter", "blend")
INCLUDE_NAME_KEYWORDS = (
    "ethiopia", "kenya", "colombia", "brazil", "guatemala", "honduras",
    "costa rica", "panama", "peru", "rwanda", "burundi", "yemen", "indonesia",
    "sumatra", "el salvador", "nicaragua", "mexico", "bolivia", "ecuador",
    "espresso", "blend", "decaf", "geisha", "gesha",
)

SHOPS = {
    "pallet": {
        "name": "pallet",
        "display_name": "Pallet Coffee Roasters",
        "platform": "shopify",
        "base_url": "https://palletcoffeeroasters.com",
        "collection": "/collections/coffee",
    },
    "rogue_wave": {
        "name": "rogue_wave",
        "display_name": "Rogue Wave Coffee",
        "platform": "shopify",
        "base_url": "https://roguewavecoffee.ca",
        "collection": "/collections/coffee",
    },
    "timbertrain": {
        "name": "timbertrain",
        "display_name": "Timbertrain Coffee Roasters",
        "platform": "woocommerce",
        "base_url": "https://timbertraincoffeeroasters.com",
        "category": "coffee",
    },
}


class ConfigError(RuntimeError):
    """Raised when required configuration is missing or inconsistent."""


@dataclass
class ScoringWeights:
    quality: float = 0.35
    seasonality: float = 0.25
    value: float = 0.25
    versatility: float = 0.15

    def total(self) -> float:
        return self.quality + self.seasonality + self.value + self.versatility

    def validate(self) -> None:
        """Weights must already sum to 1.0; they are never renormalized."""
        for name in ("quality", "seasonality", "value", "versatility"):
            if getattr(self, name) < 0:
                raise ConfigError(f"Scoring weight '{name}' must not be negative")
        if abs(self.total() - 1.0) > 1e-3:
            raise ConfigError(
                f"Scoring weights must sum to 1.0, got {self.total():.4f}"
            )


@dataclass
class EnrichmentConfig:
    model: str = ENRICHMENT_MODEL
    batch_size: int = ENRICH_BATCH_SIZE
    pace_seconds: float = ENRICH_PACE_SECONDS
    backoff_seconds: float = RATE_LIMIT_BACKOFF_SECONDS
    max_attempts: int = RATE_LIMIT_MAX_ATTEMPTS


@dataclass
class SelectionConfig:
    freshness_days: int = FRESHNESS_DAYS
    cooldown_days: int = COOLDOWN_DAYS
    shortlist_size: int = SHORTLIST_SIZE
    picks_per_bucket: int = PICKS_PER_BUCKET
    model: str = SELECTION_MODEL
    use_ai_picker: bool = False


@dataclass
class PipelineConfig:
    db_path: str = DB_PATH
    weights: ScoringWeights = field(default_factory=ScoringWeights)
    enrichment: EnrichmentConfig = field(default_factory=EnrichmentConfig)
    selection: SelectionConfig = field(default_factory=SelectionConfig)
    report_model: str = REPORT_MODEL
    languages: tuple[str, ...] = REPORT_LANGUAGES
    publish_sink: str = "sqlite"  # 'sqlite' | 'telegram'
    anthropic_api_key: str | None = None
    telegram_bot_token: str | None = None
    telegram_chat_id: str | None = None

    def require_credentials(self, *, needs_llm: bool = True) -> None:
        """Fail fast before a run starts if an endpoint credential is missing."""
        if needs_llm and not self.anthropic_api_key:
            raise ConfigError("ANTHROPIC_API_KEY is not set")
        if self.publish_sink == "telegram":
            if not self.telegram_bot_token:
                raise ConfigError("TELEGRAM_BOT_TOKEN is not set (PUBLISH_SINK=telegram)")
            if not self.telegram_chat_id:
                raise ConfigError("TELEGRAM_CHAT_ID is not set (PUBLISH_SINK=telegram)")


def _env_float(env: dict, key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigError(f"{key} must be a number, got '{raw}'")


def _env_int(env: dict, key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{key} must be an integer, got '{raw}'")


def load_config(env: dict | None = None) -> PipelineConfig:
    """Build the pipeline configuration once, at process start."""
    env = dict(os.environ) if env is None else env

    weights = ScoringWeights(
        quality=_env_float(env, "WEIGHT_QUALITY", ScoringWeights.quality),
        seasonality=_env_float(env, "WEIGHT_SEASONALITY", ScoringWeights.seasonality),
        value=_env_float(env, "WEIGHT_VALUE", ScoringWeights.value),
        versatility=_env_float(env, "WEIGHT_VERSATILITY", ScoringWeights.versatility),
    )
    weights.validate()

    enrichment = EnrichmentConfig(
        model=env.get("ENRICHMENT_MODEL") or ENRICHMENT_MODEL,
        batch_size=_env_int(env, "ENRICH_BATCH_SIZE", ENRICH_BATCH_SIZE),
        pace_seconds=_env_float(env, "ENRICH_PACE_SECONDS", ENRICH_PACE_SECONDS),
        backoff_seconds=_env_float(env, "RATE_LIMIT_BACKOFF_SECONDS", RATE_LIMIT_BACKOFF_SECONDS),
        max_attempts=_env_int(env, "RATE_LIMIT_MAX_ATTEMPTS", RATE_LIMIT_MAX_ATTEMPTS),
    )
    if enrichment.max_attempts < 1:
        raise ConfigError("RATE_LIMIT_MAX_ATTEMPTS must be at least 1")

    selection = SelectionConfig(
        freshness_days=_env_int(env, "FRESHNESS_DAYS", FRESHNESS_DAYS),
        cooldown_days=_env_int(env, "COOLDOWN_DAYS", COOLDOWN_DAYS),
        shortlist_size=_env_int(env, "SHORTLIST_SIZE", SHORTLIST_SIZE),
        picks_per_bucket=_env_int(env, "PICKS_PER_BUCKET", PICKS_PER_BUCKET),
        model=env.get("SELECTION_MODEL") or SELECTION_MODEL,
        use_ai_picker=env.get("USE_AI_PICKER", "false").lower() == "true",
    )
    if selection.shortlist_size < selection.picks_per_bucket:
        raise ConfigError("SHORTLIST_SIZE must be >= PICKS_PER_BUCKET")

    sink = (env.get("PUBLISH_SINK") or "sqlite").strip().lower()
    if sink not in ("sqlite", "telegram"):
        raise ConfigError(f"Unknown PUBLISH_SINK '{sink}'")

    return PipelineConfig(
        db_path=env.get("DB_PATH") or DB_PATH,
        weights=weights,
        enrichment=enrichment,
        selection=selection,
        report_model=env.get("REPORT_MODEL") or REPORT_MODEL,
        publish_sink=sink,
        anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
        telegram_bot_token=env.get("TELEGRAM_BOT_TOKEN") or None,
        telegram_chat_id=env.get("TELEGRAM_CHAT_ID") or None,
    )
