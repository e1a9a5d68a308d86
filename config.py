import os
from dataclasses import dataclass, field
from typing import List
from dotenv import load_dotenv

load_dotenv()


def _split_origins(value: str) -> List[str]:
    return [o.strip() for o in value.split(",") if o.strip()]


@dataclass
class Settings:
    # Database
    mongo_url: str = os.getenv("MONGO_URL", "mongodb://localhost:27017")
    mongo_db_name: str = os.getenv("MONGO_DB_NAME", "library_db")

    # Auth
    secret_key: str = os.getenv("SECRET_KEY", "change-this-secret-key")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

    # CORS (comma-separated)
    origins: List[str] = field(default_factory=lambda: _split_origins(os.getenv("ORIGINS", "*")))

    # Lending rules
    loan_period_days: int = int(os.getenv("LOAN_PERIOD_DAYS", "14"))
    cas_max_retries: int = int(os.getenv("CAS_MAX_RETRIES", "5"))

    # Pagination
    default_page_size: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    max_page_size: int = int(os.getenv("MAX_PAGE_SIZE", "100"))

    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Seed admin account (create_admin.py)
    admin_email: str = os.getenv("ADMIN_EMAIL", "admin@lib.com")
    admin_username: str = os.getenv("ADMIN_USERNAME", "Admin")
    admin_password: str = os.getenv("ADMIN_PASSWORD", "admin123")


settings = Settings()
