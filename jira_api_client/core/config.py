from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from pydantic import (
    AliasChoices,
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from jira_api_client.core.errors import ConfigError

ConfigSource = Union[Mapping[str, Any], str, "os.PathLike[str]", None]

_HTTP_URL = TypeAdapter(AnyHttpUrl)

DEFAULT_CONFIG_TEMPLATE = """\
# Jira connection settings
jira.url=https://example.atlassian.net
jira.username=user@example.com
jira.api.token=changeme
jira.timeout.ms=15000
jira.retry.count=3
"""


class ConnectionConfig(BaseModel):
    """
    PUBLIC_INTERFACE
    Immutable Jira connection settings, created once at startup.

    Keys are accepted in camelCase (``baseUrl``), snake_case (``base_url``) or the
    dotted ``jira.*`` property names.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    base_url: str = Field(
        validation_alias=AliasChoices("baseUrl", "base_url", "jira.url"),
        description="Jira instance URL, e.g. https://your-domain.atlassian.net",
    )
    username: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("username", "user", "email", "jira.username"),
        description="Account name or email for basic auth",
    )
    auth_token: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("authToken", "auth_token", "apiToken", "jira.api.token"),
        description="API token (basic auth with username) or personal access token (bearer)",
    )
    password: Optional[SecretStr] = Field(
        default=None,
        validation_alias=AliasChoices("password", "jira.password"),
        description="Password for basic auth",
    )
    timeout_ms: int = Field(
        default=15000,
        gt=0,
        validation_alias=AliasChoices("timeoutMs", "timeout_ms", "jira.timeout.ms"),
        description="Per-attempt request timeout in milliseconds",
    )
    retry_count: int = Field(
        default=3,
        ge=0,
        validation_alias=AliasChoices("retryCount", "retry_count", "jira.retry.count"),
        description="Extra attempts after a network-level failure",
    )
    retry_backoff_ms: int = Field(
        default=500,
        ge=0,
        validation_alias=AliasChoices("retryBackoffMs", "retry_backoff_ms", "jira.retry.backoff.ms"),
        description="Base delay for exponential retry backoff",
    )

    @field_validator("username", "auth_token", "password", mode="before")
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        if not value:
            raise ValueError("baseUrl is required")
        try:
            _HTTP_URL.validate_python(value)
        except ValidationError:
            raise ValueError(f"baseUrl must be an absolute http(s) URL, got {value!r}") from None
        return value.rstrip("/")

    @model_validator(mode="after")
    def _validate_credentials(self) -> "ConnectionConfig":
        if self.username:
            if not (self.auth_token or self.password):
                raise ValueError("username is set but neither authToken nor password is")
        elif self.password:
            raise ValueError("password requires a username")
        elif not self.auth_token:
            raise ValueError("credentials are required: authToken, or username with authToken/password")
        return self

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    @property
    def uses_basic_auth(self) -> bool:
        return bool(self.username)

    def secret(self) -> str:
        """Token or password used in the Authorization header."""
        value = self.auth_token or self.password
        if value is None:
            raise ConfigError("No authToken or password configured")
        return value.get_secret_value()


class Settings(BaseSettings):
    """
    PUBLIC_INTERFACE
    Application configuration loaded from environment variables using pydantic-settings.
    """

    # JIRA connection
    JIRA_BASE_URL: Optional[str] = Field(default=None, description="Base URL for JIRA REST API")
    JIRA_CLOUD_SITE: Optional[str] = Field(default=None, description="Cloud site key, e.g., yoursite")
    JIRA_USERNAME: Optional[str] = Field(default=None, description="JIRA account name for basic auth")
    JIRA_EMAIL: Optional[str] = Field(default=None, description="JIRA account email (alias of JIRA_USERNAME)")
    JIRA_API_TOKEN: Optional[str] = Field(default=None, description="JIRA API token or personal access token")
    JIRA_PASSWORD: Optional[str] = Field(default=None, description="JIRA password for basic auth")

    # JIRA client behavior
    JIRA_TIMEOUT_MS: Optional[int] = Field(default=None, description="Per-attempt HTTP timeout (milliseconds)")
    JIRA_RETRY_COUNT: Optional[int] = Field(default=None, description="Retries after network-level failures")
    JIRA_RETRY_BACKOFF_MS: Optional[int] = Field(default=None, description="Base backoff for exponential retry")

    # App config
    LOG_LEVEL: str = Field(default="INFO", description="Logging level, e.g., DEBUG, INFO, WARNING")
    LOG_FORMAT: str = Field(default="text", description="Log output format: text or json")
    APP_CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=list, description="Comma-separated list of allowed CORS origins"
    )
    APP_API_KEYS: Annotated[List[str], NoDecode] = Field(
        default_factory=list, description="Comma-separated list of accepted API keys"
    )

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @field_validator("APP_CORS_ORIGINS", "APP_API_KEYS", mode="before")
    @classmethod
    def _split_csv(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [v.strip() for v in value.split(",") if v.strip()]
        return value

    @property
    def jira_base_url(self) -> Optional[str]:
        """Resolve base URL using JIRA_BASE_URL or JIRA_CLOUD_SITE."""
        if self.JIRA_BASE_URL:
            return self.JIRA_BASE_URL.rstrip("/")
        if self.JIRA_CLOUD_SITE:
            return f"https://{self.JIRA_CLOUD_SITE}.atlassian.net"
        return None

    @property
    def jira_configured(self) -> bool:
        return bool(self.jira_base_url and (self.JIRA_API_TOKEN or self.JIRA_PASSWORD))

    def connection_values(self) -> Dict[str, Any]:
        """Settings as loader key/value pairs; unset entries are omitted so defaults apply."""
        values = {
            "baseUrl": self.jira_base_url,
            "username": self.JIRA_USERNAME or self.JIRA_EMAIL,
            "authToken": self.JIRA_API_TOKEN,
            "password": self.JIRA_PASSWORD,
            "timeoutMs": self.JIRA_TIMEOUT_MS,
            "retryCount": self.JIRA_RETRY_COUNT,
            "retryBackoffMs": self.JIRA_RETRY_BACKOFF_MS,
        }
        return {k: v for k, v in values.items() if v is not None}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    PUBLIC_INTERFACE
    Returns a singleton settings instance loaded from environment variables.
    """
    return Settings()


_PROPERTY_ESCAPES = {"t": "\t", "n": "\n", "r": "\r", "f": "\f"}


def _logical_lines(text: str) -> Iterator[str]:
    """Join ``\\``-continued lines; continuation lines lose their leading whitespace."""
    pending: Optional[str] = None
    for raw_line in text.splitlines():
        line = raw_line.lstrip(" \t\f")
        if pending is None:
            if not line or line[0] in "#!":
                continue
        else:
            line = pending + line
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2:
            pending = line[:-1]
            continue
        pending = None
        yield line
    if pending is not None:
        yield pending


def _unescape(text: str) -> str:
    out: List[str] = []
    i = 0
    while i < len(text):
        ch = text[i]
        if ch != "\\" or i + 1 == len(text):
            out.append(ch)
            i += 1
            continue
        nxt = text[i + 1]
        if nxt == "u":
            digits = text[i + 2 : i + 6]
            try:
                out.append(chr(int(digits, 16)))
            except ValueError:
                raise ConfigError(f"Malformed \\u escape in properties file: \\u{digits}") from None
            i += 6
            continue
        out.append(_PROPERTY_ESCAPES.get(nxt, nxt))
        i += 2
    return "".join(out)


def _split_property(line: str) -> Tuple[str, str]:
    """Split at the first unescaped ``=``, ``:`` or whitespace, as java.util.Properties does."""
    i = 0
    while i < len(line):
        ch = line[i]
        if ch == "\\":
            i += 2
            continue
        if ch in "=: \t\f":
            break
        i += 1
    key, rest = line[:i], line[i:].lstrip(" \t\f")
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(" \t\f")
    return _unescape(key), _unescape(rest)


def read_properties(path: Path) -> Dict[str, str]:
    """
    Parse a Java ``.properties`` file.

    Handles ``#``/``!`` comments, ``=``, ``:`` or whitespace separators,
    backslash escapes (``\\:``, ``\\\\``, ``\\t``, ``\\uXXXX``) and ``\\`` line
    continuations. Later keys override earlier ones.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {path}") from None
    except OSError as exc:
        raise ConfigError(f"Cannot read configuration file {path}: {exc}") from exc

    values: Dict[str, str] = {}
    for line in _logical_lines(text):
        key, value = _split_property(line)
        if key:
            values[key] = value
    return values


def _describe(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors(include_url=False):
        location = ".".join(str(p) for p in err.get("loc", ()) if p != "__root__")
        message = err.get("msg", "invalid value").removeprefix("Value error, ")
        problems.append(f"{location}: {message}" if location else message)
    return "Invalid Jira connection configuration: " + "; ".join(problems)


# PUBLIC_INTERFACE
def load(source: ConfigSource = None) -> ConnectionConfig:
    """
    Build a ConnectionConfig from a mapping, a properties file path, or (when
    ``source`` is None) the process environment and ``.env``.

    Raises ConfigError when required values are missing or malformed.
    """
    if source is None:
        try:
            values: Mapping[str, Any] = get_settings().connection_values()
        except ValidationError as exc:
            raise ConfigError(_describe(exc), details=exc.errors(include_url=False)) from exc
    elif isinstance(source, (str, os.PathLike)):
        values = read_properties(Path(source))
    elif isinstance(source, Mapping):
        values = source
    else:
        raise ConfigError(f"Unsupported configuration source: {type(source).__name__}")

    try:
        return ConnectionConfig.model_validate(dict(values))
    except ValidationError as exc:
        raise ConfigError(_describe(exc), details=exc.errors(include_url=False)) from exc


# PUBLIC_INTERFACE
def write_default_config(path: Union[str, "os.PathLike[str]"]) -> Path:
    """Write a properties template with placeholder values. Never overwrites."""
    target = Path(path)
    if target.exists():
        raise ConfigError(f"Configuration file already exists: {target}")
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(DEFAULT_CONFIG_TEMPLATE, encoding="utf-8")
    return target
