import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: str) -> str:
    return os.getenv(name, default).strip()


@dataclass
class Settings:
    # Storage
    database_url: str = _flag("BOOKLOANS_DB", "sqlite:///./bookloans.db")
    store_backend: str = _flag("BOOKLOANS_STORE", "sql").lower()

    # Logging
    log_level: str = _flag("BOOKLOANS_LOG", "INFO").upper()

    # Lending rules
    loan_days: int = int(_flag("BOOKLOANS_LOAN_DAYS", "14"))

    # Request handling
    request_timeout: float = float(_flag("BOOKLOANS_REQUEST_TIMEOUT", "30"))
    conflict_retries: int = int(_flag("BOOKLOANS_CONFLICT_RETRIES", "3"))
    retry_backoff: float = float(_flag("BOOKLOANS_RETRY_BACKOFF", "0.05"))

    # First admin account, created at startup when both are set
    admin_email: Optional[str] = os.getenv("BOOKLOANS_ADMIN_EMAIL")
    admin_password: Optional[str] = os.getenv("BOOKLOANS_ADMIN_PASSWORD")
    admin_name: str = _flag("BOOKLOANS_ADMIN_NAME", "Administrator")


settings = Settings()
