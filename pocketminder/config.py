import os  # lets us read environment variables (from the OS)
from functools import (
    lru_cache,  # tiny built-in cache; we use it to reuse one Settings object
)

from dotenv import load_dotenv  # loads variables from a local .env file
from pydantic import BaseModel  # Pydantic gives us a typed, validated settings class

load_dotenv()  # read .env and put those key=value pairs into environment variables


class Settings(BaseModel):  # our typed container for config values
    # database connection string; default is a SQLite file in the project folder
    # change effect: point to a different DB (e.g., Postgres) or file path
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./pocketminder.db")

    # IANA zone of the user; every stored instant is wall-clock time in this zone
    # change effect: shifts month boundaries and reminder times
    local_timezone: str = os.getenv("LOCAL_TIMEZONE", "UTC")

    # currency used for users created without one
    default_currency: str = os.getenv("DEFAULT_CURRENCY", "USD")

    # root log level for configure_logging()
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # time limit for a single engine operation, covering all store/notifier calls
    # change effect: lower values turn slow storage into retryable errors sooner
    io_deadline_seconds: float = float(os.getenv("IO_DEADLINE_SECONDS", "10"))

    # how many days before a due date the bill reminder fires
    bill_reminder_lead_days: int = int(os.getenv("BILL_REMINDER_LEAD_DAYS", "3"))

    # compare-and-set attempts before a contended write gives up
    cas_retries: int = int(os.getenv("CAS_RETRIES", "3"))

    # "calendar" keeps month steps on the start day; "rebase" steps from the clamped day
    recurrence_anchor: str = os.getenv("RECURRENCE_ANCHOR", "calendar")


@lru_cache  # make sure Settings() is created once and reused (fast + consistent)
def get_settings() -> Settings:
    return Settings()  # build from env (already loaded by load_dotenv())
