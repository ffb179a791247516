from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from appboot.bootstrap.context import Enablers

if TYPE_CHECKING:
    from appboot.bootstrap.context import ApplicationContext


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "appboot"
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    DATABASE_ENABLED: bool = False
    HTTP_SERVER_ENABLED: bool = False
    GRPC_SERVER_ENABLED: bool = False

    HTTP_HOST: Optional[str] = None
    HTTP_PORT: Optional[str] = None
    HTTP_SWAGGER_PORT: Optional[str] = None
    HTTP_CORS_ALLOW_ORIGIN: Optional[str] = None

    GRPC_HOST: Optional[str] = None
    GRPC_PORT: Optional[str] = None

    TOKEN_SIGNATURE_KEY: Optional[str] = None
    TOKEN_TIMEOUT_MINUTES: int = 60
    PASSWORD_MIN_LENGTH: int = 16
    PASSWORD_MIN_SPECIAL_CHARS: int = 2
    PASSWORD_MIN_NUMBERS: int = 2
    PASSWORD_MIN_UPPERCASE: int = 2
    PASSWORD_BCRYPT_ROUNDS: int = 12

    DATABASE_DRIVER: Optional[str] = None
    DATABASE_PARAM_HOLDER: Optional[str] = None
    DATASOURCE_URL: Optional[str] = None
    DATASOURCE_USERNAME: Optional[str] = None
    DATASOURCE_PASSWORD: Optional[str] = None
    DATASOURCE_SERVER: Optional[str] = None
    DATASOURCE_SERVICE: Optional[str] = None

    @property
    def enablers(self) -> Enablers:
        return Enablers(
            database_enabled=self.DATABASE_ENABLED,
            http_server_enabled=self.HTTP_SERVER_ENABLED,
            grpc_server_enabled=self.GRPC_SERVER_ENABLED,
        )


def settings_from_values(values: dict[str, Any]) -> Settings:
    known = {name: value for name, value in values.items() if name in Settings.model_fields}
    return Settings(**known)


def apply_settings(ctx: "ApplicationContext", settings: Settings) -> None:
    ctx.http_config.host = settings.HTTP_HOST
    ctx.http_config.port = settings.HTTP_PORT
    ctx.http_config.swagger_port = settings.HTTP_SWAGGER_PORT
    ctx.http_config.cors_allow_origin = settings.HTTP_CORS_ALLOW_ORIGIN

    ctx.grpc_config.host = settings.GRPC_HOST
    ctx.grpc_config.port = settings.GRPC_PORT

    ctx.security_config.token_signature_key = settings.TOKEN_SIGNATURE_KEY
    ctx.security_config.token_timeout_minutes = settings.TOKEN_TIMEOUT_MINUTES
    ctx.security_config.password_min_length = settings.PASSWORD_MIN_LENGTH
    ctx.security_config.password_min_special_chars = settings.PASSWORD_MIN_SPECIAL_CHARS
    ctx.security_config.password_min_numbers = settings.PASSWORD_MIN_NUMBERS
    ctx.security_config.password_min_uppercase = settings.PASSWORD_MIN_UPPERCASE
    ctx.security_config.password_bcrypt_rounds = settings.PASSWORD_BCRYPT_ROUNDS

    ctx.database_config.driver = settings.DATABASE_DRIVER
    ctx.database_config.param_holder = settings.DATABASE_PARAM_HOLDER
    ctx.database_config.datasource_url = settings.DATASOURCE_URL
    ctx.database_config.datasource_username = settings.DATASOURCE_USERNAME
    ctx.database_config.datasource_password = settings.DATASOURCE_PASSWORD
    ctx.database_config.datasource_server = settings.DATASOURCE_SERVER
    ctx.database_config.datasource_service = settings.DATASOURCE_SERVICE


def load_settings_config(ctx: "ApplicationContext") -> None:
    """Config loader that fills every block from the context environment."""
    values = ctx.environment.as_dict() if ctx.environment is not None else {}
    try:
        settings = settings_from_values(values)
    except ValidationError as exc:
        raise RuntimeError(f"invalid configuration: {exc.error_count()} error(s)") from exc
    apply_settings(ctx, settings)
