"""Runtime settings for a theme update run.

Everything is read once from the environment at startup and handed to the
workflow as a single immutable value:

    settings = ThemeUpdaterSettings.load()
    await ThemeUpdateWorkflow(settings).run()
"""

import base64
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from guide_theme_client.errors import ConfigurationError
from guide_theme_client.models import StatusPollingConfig

DEFAULT_THEME_PATH = Path("./.github/workflows/scripts/theme.zip")

REQUIRED_VARIABLES = (
    "ZENDESK_SUBDOMAIN",
    "ZENDESK_EMAIL",
    "ZENDESK_TOKEN",
    "THEME_ID",
)


class ThemeUpdaterSettings(BaseSettings):
    model_config = SettingsConfigDict(
        case_sensitive=False,
        extra="ignore",
        frozen=True,
    )

    # === Required ===

    zendesk_subdomain: str = Field(..., min_length=1, description="Helpdesk subdomain")
    zendesk_email: str = Field(..., min_length=1, description="Agent email owning the API token")
    zendesk_token: SecretStr = Field(..., description="Helpdesk API token")
    theme_id: str = Field(..., min_length=1, description="Theme to replace")

    # === Optional ===

    zendesk_base_url: Optional[str] = Field(
        default=None,
        description="Override for the API root, mostly for tests",
    )
    theme_path: Path = Field(default=DEFAULT_THEME_PATH, description="Packaged theme zip")
    replace_settings: bool = Field(default=True)
    github_step_summary: Optional[Path] = Field(
        default=None,
        description="CI step summary file; reports are only logged when unset",
    )
    request_timeout: float = Field(default=30.0, gt=0, description="Per HTTP call, seconds")
    log_level: str = Field(default="INFO")

    polling: StatusPollingConfig = Field(default_factory=StatusPollingConfig)

    @field_validator("zendesk_token")
    @classmethod
    def validate_token(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value():
            raise ValueError("API token must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        valid_levels = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
        upper_v = v.upper()
        if upper_v not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return upper_v

    @property
    def api_base_url(self) -> str:
        if self.zendesk_base_url:
            return self.zendesk_base_url.rstrip("/")
        return f"https://{self.zendesk_subdomain}.zendesk.com/api/v2"

    @property
    def api_user(self) -> str:
        return f"{self.zendesk_email}/token"

    @property
    def authorization_header(self) -> str:
        """Basic credentials for the API token scheme, user `{email}/token`"""
        token = f"{self.api_user}:{self.zendesk_token.get_secret_value()}".encode("utf-8")
        return "Basic " + base64.b64encode(token).decode("ascii")

    @classmethod
    def load(cls, **overrides) -> "ThemeUpdaterSettings":
        """Build settings from the environment, reporting every missing required variable at once"""
        try:
            return cls(**overrides)
        except ValidationError as e:
            missing = []
            for error in e.errors():
                name = str(error["loc"][0]).upper() if error["loc"] else ""
                if name in REQUIRED_VARIABLES and name not in missing:
                    missing.append(name)
            if missing:
                raise ConfigurationError.missing_variables(missing) from e
            raise ConfigurationError(f"Invalid configuration: {e}") from e
