"""AI-powered structured enrichment for catalog items."""

from enrichment.models import EnrichmentRecord, IntendedUse, SeasonalityStatus

__all__ = ["EnrichmentRecord", "IntendedUse", "SeasonalityStatus"]
