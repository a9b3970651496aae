"""Settings for webrepo.

Settings are pydantic-settings models: values come from keyword arguments
first, then ``WEBREPO_*`` environment variables, then the field defaults.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

INFLECTION_METHODS = (
    "underscore",
    "dasherize",
    "camelize",
    "variable",
    "tableize",
    "pluralize",
    "singularize",
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="WEBREPO_",
        extra="allow",
        arbitrary_types_allowed=True,
        validate_default=True,
        protected_namespaces=("model_", "settings_"),
    )


class RepositorySettings(Settings):
    """Repository configuration settings."""

    default_connection: str = Field(
        default="webservice",
        description="Connection name used when an endpoint is built without one",
    )
    inflection_method: str = Field(
        default="underscore",
        description="Inflection applied to endpoint names",
    )
    default_finder: str = Field(default="all", description="Finder used by get()")

    # Caching settings
    cache_namespace: str = Field(default="webrepo", description="Cache key prefix")
    cache_ttl: int | None = Field(default=None, description="Cache TTL in seconds")

    log_level: str = Field(default="INFO")

    @field_validator("inflection_method")
    @classmethod
    def validate_inflection_method(cls, v: str) -> str:
        if v not in INFLECTION_METHODS:
            msg = f"inflection_method must be one of {', '.join(INFLECTION_METHODS)}"
            raise ValueError(msg)
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        return v.upper()
