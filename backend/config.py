import os
from pathlib import Path

from dotenv import load_dotenv


_BACKEND_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _BACKEND_DIR.parent

# Root .env is canonical; backend/.env remains a backward-compatible fallback.
load_dotenv(_PROJECT_ROOT / ".env")
load_dotenv(_BACKEND_DIR / ".env")


def _first_non_empty_env(*names: str, default: str) -> str:
    """Returns the first non-empty env var value from `names`, else `default`."""
    for name in names:
        value = os.getenv(name)
        if value is not None and value != "":
            return value
    return default


def _parse_list_env(name: str, default: list[str]) -> list[str]:
    """
    Parses a comma-separated env var into a list of trimmed, non-empty items.

    LEDGER_DEFAULT_PEOPLE="Ann, Bob ,,Cy"  →  ["Ann", "Bob", "Cy"]
    An unset or all-blank value returns `default`.
    """
    raw = os.getenv(name)
    if not raw:
        return list(default)
    items = [item.strip() for item in raw.split(",")]
    items = [item for item in items if item]
    return items or list(default)


_DEFAULT_PEOPLE = ["Apurv", "Dhaivat", "Nishant", "Rutvik"]


class BaseConfig:

    SECRET_KEY: str = _first_non_empty_env(
        "SECRET_KEY",
        default="change-me-in-production",
    )

    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    JSON_SORT_KEYS: bool = False

    # Key of the single ledger row in ledger_records. Changing it starts a
    # fresh ledger; the old row is left untouched.
    LEDGER_STORAGE_KEY: str = _first_non_empty_env(
        "LEDGER_STORAGE_KEY",
        default="billSplitter.v1",
    )

    # Roster for a brand-new (or reset) ledger.
    LEDGER_DEFAULT_PEOPLE: list[str] = _parse_list_env("LEDGER_DEFAULT_PEOPLE", _DEFAULT_PEOPLE)

    # Prefix of persisted transaction amounts ("€12.34"). Existing ledgers
    # were written with "€"; only change this for a fresh storage key.
    LEDGER_CURRENCY_SYMBOL: str = _first_non_empty_env(
        "LEDGER_CURRENCY_SYMBOL",
        default="€",
    )

    # Level for the backend.app.* loggers (engine mutations log at INFO).
    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="INFO").upper()


class DevelopmentConfig(BaseConfig):
    DEBUG:   bool = True
    TESTING: bool = False

    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="DEBUG").upper()

    SQLALCHEMY_DATABASE_URI: str = os.getenv(
        "DATABASE_URL",
        f"sqlite:///{_BACKEND_DIR / 'splitledger.db'}",
    )
    SQLALCHEMY_ECHO: bool = False


class TestingConfig(BaseConfig):

    DEBUG:   bool = True
    TESTING: bool = True

    # In-memory SQLite; Flask-SQLAlchemy shares one connection across the app.
    SQLALCHEMY_DATABASE_URI: str = os.getenv(
        "TEST_DATABASE_URL",
        "sqlite://",
    )
    SQLALCHEMY_ECHO: bool = False

    LEDGER_STORAGE_KEY: str = "billSplitter.test"
    LEDGER_DEFAULT_PEOPLE: list[str] = list(_DEFAULT_PEOPLE)
    LEDGER_CURRENCY_SYMBOL: str = "€"


class ProductionConfig(BaseConfig):

    DEBUG:   bool = False
    TESTING: bool = False
    SQLALCHEMY_ECHO: bool = False

    # Resolve at class definition time (import time).
    # Heroku / Render return 'postgres://' which SQLAlchemy 1.4+ rejects;
    # normalise to 'postgresql://'.
    _raw_db_url: str = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI: str = (
        _raw_db_url.replace("postgres://", "postgresql://", 1)
        if _raw_db_url.startswith("postgres://")
        else _raw_db_url
    )


def validate_production_config(app) -> None:
    """
    Fail-fast guard for production configuration.

    Called in the app factory right after loading ProductionConfig.
    Raises ValueError if any required production value is missing or insecure.
    """
    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        raise ValueError(
            "DATABASE_URL environment variable is required in production. "
            "Set it to a valid database connection string."
        )
    if app.config.get("SECRET_KEY") == "change-me-in-production":
        raise ValueError(
            "SECRET_KEY must be set to a strong random value in production. "
            "Do not use the default placeholder."
        )
    if not app.config.get("LEDGER_DEFAULT_PEOPLE"):
        raise ValueError("LEDGER_DEFAULT_PEOPLE must name at least one participant.")


# ── Config selector ────────────────────────────────────────────────────────
#
# Used by the app factory:
#   from backend.config import config_by_name
#   app.config.from_object(config_by_name[flask_env])
# ──────────────────────────────────────────────────────────────────────────

config_by_name: dict[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing":     TestingConfig,
    "production":  ProductionConfig,
}
