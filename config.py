"""
Файл задания основных настроек сервера.
"""

# -- импорт модулей
import dataclasses
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


def _env(name: str, default: str) -> str:
    return os.getenv(name, default)


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name, "").strip()
    return Path(value) if value else None


# -- создание класса настроек
@dataclasses.dataclass(frozen=True)
class Config:
    CREDENTIALS_FILE: Path = dataclasses.field(
        default_factory=lambda: Path(_env("GOOGLE_APPLICATION_CREDENTIALS", "./service-account.json")))
    PROJECT_ID: str = dataclasses.field(default_factory=lambda: _env("PROJECT_ID", "apps/level.game"))
    REPORT_TIMEZONE: str = dataclasses.field(default_factory=lambda: _env("REPORT_TIMEZONE", "UTC"))
    CHART_FILE: Optional[Path] = dataclasses.field(default_factory=lambda: _env_path("CHART_FILE"))
    API_URL: str = dataclasses.field(
        default_factory=lambda: _env("REPORTING_API_URL", "https://playdeveloperreporting.googleapis.com"))
    REQUEST_TIMEOUT: float = dataclasses.field(default_factory=lambda: float(_env("REQUEST_TIMEOUT", "30")))
    HOST: str = dataclasses.field(default_factory=lambda: _env("HOST", "0.0.0.0"))
    PORT: int = dataclasses.field(default_factory=lambda: int(_env("PORT", "8080")))
    DEBUG: bool = dataclasses.field(
        default_factory=lambda: _env("DEBUG", "false").lower() in ("true", "1", "yes"))
    LOG_LEVEL: str = dataclasses.field(default_factory=lambda: _env("LOG_LEVEL", "INFO").upper())


# - создание настроек
config = Config()
