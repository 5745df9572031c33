from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for the order intake tool.

Built by ``order_intake.config.loader`` after schema validation; the rest of
the package only ever sees these frozen objects.
"""

DEFAULT_SETTINGS_PATH = ".order_intake/settings.json"


@dataclass(frozen=True)
class DatabaseConfig:
    """Connection settings for the Postgres-backed field registry.

    Used as fallback when environment variables are not set.
    Environment variables (DATABASE_URL / PG*) take precedence.
    """
    host: str | None = None
    port: int | None = None
    user: str | None = None
    password: str | None = None
    database: str | None = None
    dsn: str | None = None

    @property
    def configured(self) -> bool:
        return bool(self.dsn or self.host or self.database)


@dataclass(frozen=True)
class LLMConfig:
    """Text-generation endpoint used to escalate low-confidence analyses."""
    enabled: bool = True
    endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models"
    model: str = "gemini-2.0-flash"
    api_key_env: str = "GEMINI_API_KEY"
    timeout_seconds: float = 30.0


@dataclass(frozen=True)
class ExportConfig:
    filename_prefix: str = "objednavka"


@dataclass(frozen=True)
class IntakeConfig:
    """Root configuration object for the intake tool."""
    source_directory: str  # Directory scanned for order files
    output_directory: str  # Directory receiving exported spreadsheets
    settings_path: str = DEFAULT_SETTINGS_PATH
    export: ExportConfig = field(default_factory=ExportConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
