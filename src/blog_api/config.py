import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


# PUBLIC_INTERFACE
def load_env_file(path: Optional[str] = None) -> None:
    """Load variables from a .env file if one exists. Existing env vars win."""
    env_path = Path(path) if path else Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = field(default_factory=lambda: _env("PROJECT_NAME", "Blog API"))
    api_version: str = field(default_factory=lambda: _env("API_VERSION", "1.0.0"))
    log_level: str = field(default_factory=lambda: _env("LOG_LEVEL", "INFO"))

    # Required for security; checked when a token is first signed or verified.
    jwt_secret: Optional[str] = field(default_factory=lambda: os.getenv("JWT_SECRET"))
    jwt_algorithm: str = field(default_factory=lambda: _env("JWT_ALGORITHM", "HS256"))
    jwt_expires_minutes: int = field(default_factory=lambda: _env_int("JWT_EXPIRES_MINUTES", 60))

    bcrypt_rounds: int = field(default_factory=lambda: _env_int("BCRYPT_ROUNDS", 10))

    # "postgres" or "memory"
    storage_backend: str = field(default_factory=lambda: _env("STORAGE_BACKEND", "postgres").lower())

    cors_allow_origins: str = field(default_factory=lambda: _env("CORS_ALLOW_ORIGINS", "*"))

    @property
    def allow_origins(self) -> List[str]:
        origins = [o.strip() for o in self.cors_allow_origins.split(",") if o.strip()]
        return origins or ["*"]


# PUBLIC_INTERFACE
def get_settings() -> Settings:
    """Read settings from the environment (after loading a local .env file)."""
    load_env_file()
    return Settings()
