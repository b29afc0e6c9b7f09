import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    """Runtime settings read from the environment (.env is honoured)."""

    DATABASE_URL = os.getenv("DATABASE_URL")
    DATABASE_NAME = os.getenv("DATABASE_NAME")

    # Upper bound for one submission's unit of work
    STORE_TIMEOUT_SECONDS = float(os.getenv("STORE_TIMEOUT_SECONDS", "5"))

    HISTORY_PAGE_SIZE = int(os.getenv("HISTORY_PAGE_SIZE", "10"))
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
    PORT = int(os.getenv("PORT", "8000"))

    @classmethod
    def database_configured(cls) -> bool:
        return bool(cls.DATABASE_URL and cls.DATABASE_NAME)
