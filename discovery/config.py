"""
Configuration module for the Discovery Engine.

Loads environment variables and provides configuration singletons.
Uses pydantic for validation.
"""

from pydantic_settings import BaseSettings
from typing import Optional
import os


class Config(BaseSettings):
    """
    Application configuration loaded from environment variables.

    All values come from .env file or system environment.
    Type hints provide validation (pydantic converts types automatically).
    """

    # ============================================================
    # FIREBASE CONFIGURATION (REQUIRED)
    # ============================================================
    FIREBASE_PROJECT_ID: str = ""
    """Firebase project ID. Find in Firebase Console → Project Settings."""

    GOOGLE_APPLICATION_CREDENTIALS: str = "/config/serviceAccountKey.json"
    """Path to Firebase service account JSON file."""

    # ============================================================
    # LLM CONFIGURATION (ICEBREAKER REFINEMENT ONLY)
    # ============================================================
    PERPLEXITY_API_KEY: Optional[str] = None
    """Perplexity API key for Sonar LLM. Get from https://perplexity.ai/settings/api"""

    PERPLEXITY_MODEL: str = "sonar"
    """Perplexity model. Use 'sonar' (default) or 'sonar-pro'."""

    OPENAI_API_KEY: Optional[str] = None
    """OpenAI API key (fallback if Perplexity not available)."""

    OPENAI_MODEL: Optional[str] = "gpt-3.5-turbo"
    """OpenAI model to use for icebreaker refinement."""

    ICEBREAKERS_LLM_ENABLED: bool = False
    """Refine the first icebreaker per candidate with an LLM. Off by default."""

    # ============================================================
    # LANGSMITH CONFIGURATION (OPTIONAL - FOR DEBUGGING)
    # ============================================================
    LANGSMITH_API_KEY: Optional[str] = None
    """LangSmith API key for tracing graphs. Leave empty if not using."""

    LANGSMITH_ENABLED: bool = False
    """Enable LangSmith tracing. Set to True only if LANGSMITH_API_KEY is set."""

    # ============================================================
    # DISCOVERY PIPELINE
    # ============================================================
    GRAPH_TIMEOUT: int = 30
    """Maximum seconds a discovery request may take. Default: 30 seconds."""

    MAX_CANDIDATES: int = 500
    """Hard cap on real candidates retrieved per request."""

    OVERFETCH_FACTOR: int = 3
    """Candidates retrieved per requested slot, to absorb distance filtering losses."""

    SCORE_WORKERS: int = 8
    """Upper bound on threads used to score a candidate batch."""

    # ============================================================
    # SHOWCASE FALLBACK
    # ============================================================
    SHOWCASE_ENABLED: bool = True
    """Fill sparse result sets with demo profiles flagged isShowcase."""

    SHOWCASE_MIN_REAL_PROFILES: int = 5
    """Showcase fallback triggers below this many real candidates."""

    SHOWCASE_MAX_PROFILES: int = 20
    """Maximum showcase profiles added to one result set."""

    SHOWCASE_AGE_SLACK_YEARS: int = 5
    """Years added on both sides of the age band for showcase profiles."""

    # ============================================================
    # GEOCODING
    # ============================================================
    GEOCODER_URL: str = "https://nominatim.openstreetmap.org/search"
    """Nominatim-compatible search endpoint used for postcode lookups."""

    GEOCODER_USER_AGENT: str = "DiscoveryEngine/1.0"
    """User-Agent sent to the geocoder (Nominatim requires one)."""

    GEOCODER_TIMEOUT_SECONDS: float = 3.0
    """Timeout for a single postcode lookup."""

    DEFAULT_POSTCODE_RADIUS_KM: int = 25
    """Radius applied when searching by postcode without an explicit maxDistance."""

    # ============================================================
    # SCORE CACHE
    # ============================================================
    SCORE_CACHE_ENABLED: bool = False
    """Read-through cache of compatibility scores in Firestore (match_scores)."""

    SCORE_CACHE_TTL_SECONDS: int = 3600
    """Cached scores older than this are recomputed."""

    # ============================================================
    # SECURITY CONFIGURATION
    # ============================================================
    AI_SERVICE_TOKEN: str = os.getenv("AI_SERVICE_TOKEN", "")
    """Shared secret for authenticating requests from the JS backend."""

    # ============================================================
    # SERVER CONFIGURATION
    # ============================================================
    PORT: int = 8000
    """Port to run FastAPI server on. Default: 8000."""

    HOST: str = "0.0.0.0"
    """Host to bind to. 0.0.0.0 = accessible from network."""

    DEBUG: bool = False
    """Enable debug logging. Set True for development, False for production."""

    class Config:
        """Pydantic configuration."""
        env_file = ".env"  # Read from .env file
        case_sensitive = True  # Variable names are case-sensitive
        extra = "ignore"  # Ignore extra env vars not defined above


# ============================================================
# SINGLETON INSTANCE
# ============================================================
# Load config once at startup, reuse throughout app
config = Config()


# ============================================================
# VALIDATION AT STARTUP
# ============================================================
def validate_config() -> dict:
    """
    Validate that required config values are set.

    Called at app startup to fail fast if config is incomplete.

    Returns:
        dict: Status of each required field

    Raises:
        ValueError: If required config is missing
    """
    errors = []

    # Firebase is always required
    if not config.FIREBASE_PROJECT_ID:
        errors.append("FIREBASE_PROJECT_ID is required")

    # LLM keys are only needed when icebreaker refinement is on
    if config.ICEBREAKERS_LLM_ENABLED and not config.PERPLEXITY_API_KEY and not config.OPENAI_API_KEY:
        errors.append(
            "ICEBREAKERS_LLM_ENABLED=True requires PERPLEXITY_API_KEY or OPENAI_API_KEY"
        )

    # If LangSmith enabled, must have API key
    if config.LANGSMITH_ENABLED and not config.LANGSMITH_API_KEY:
        errors.append("LANGSMITH_ENABLED=True but LANGSMITH_API_KEY not set")

    if config.GEOCODER_TIMEOUT_SECONDS <= 0:
        errors.append("GEOCODER_TIMEOUT_SECONDS must be positive")

    if errors:
        raise ValueError(f"Configuration errors:\n" + "\n".join([f"  - {e}" for e in errors]))

    return {
        "firebase": "✓ Configured" if config.FIREBASE_PROJECT_ID else "✗ Missing",
        "icebreakers_llm": "✓ Enabled" if config.ICEBREAKERS_LLM_ENABLED else "✗ Disabled",
        "showcase": "✓ Enabled" if config.SHOWCASE_ENABLED else "✗ Disabled",
        "score_cache": "✓ Enabled" if config.SCORE_CACHE_ENABLED else "✗ Disabled",
        "langsmith": "✓ Configured" if config.LANGSMITH_ENABLED else "✗ Disabled",
    }


if __name__ == "__main__":
    """Allow testing config by running: python -m discovery.config"""
    try:
        status = validate_config()
        print("✅ Configuration is valid!")
        print("\nConfiguration Status:")
        for key, value in status.items():
            print(f"  {key}: {value}")
    except ValueError as e:
        print(f"❌ Configuration error:\n{e}")
        exit(1)
