"""User settings: the :class:`Settings` record, its JSON file and the key vault.

Settings come from three layers, each overriding the previous one:

1. ``settings.json`` (by default under ``~/.plotweaver``);
2. ``--set KEY=VALUE`` pairs given on the command line;
3. ``PLOTWEAVER_*`` environment variables.

The API key never touches disk in plaintext. It is written as
``api_key_ciphertext``, a Fernet token whose key file sits next to the
settings file.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from cryptography.fernet import Fernet, InvalidToken

from ..ai.client import ClientSettings
from ..utils.file_io import read_json, read_text, write_json, write_text

__all__ = [
    "Settings",
    "SettingsStore",
    "SecretVault",
    "FernetSecretProvider",
    "DEFAULT_SETTINGS_PATH",
    "redact_secret",
]

LOGGER = logging.getLogger(__name__)

PLOTWEAVER_HOME = Path.home() / ".plotweaver"
DEFAULT_SETTINGS_PATH = PLOTWEAVER_HOME / "settings.json"
SETTINGS_FORMAT_VERSION = 1
CIPHERTEXT_FIELD = "api_key_ciphertext"


def _env_flag(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "on", "debug"}


# variable -> (settings field, converter)
_ENV_OVERRIDES: Mapping[str, tuple[str, Callable[[str], Any]]] = {
    "PLOTWEAVER_API_KEY": ("api_key", str),
    "PLOTWEAVER_BASE_URL": ("base_url", str),
    "PLOTWEAVER_MODEL": ("model", str),
    "PLOTWEAVER_ORGANIZATION": ("organization", str),
    "PLOTWEAVER_PROJECTS_DIR": ("projects_dir", str),
    "PLOTWEAVER_DEBUG_LOGGING": ("debug_logging", _env_flag),
    "PLOTWEAVER_REQUEST_TIMEOUT": ("request_timeout", float),
    "PLOTWEAVER_TEMPERATURE": ("temperature", float),
    "PLOTWEAVER_AUTOSAVE_DELAY": ("autosave_delay", float),
    "PLOTWEAVER_HISTORY_LIMIT": ("history_limit", int),
    "PLOTWEAVER_MAX_RETRIES": ("max_retries", int),
}


@dataclass(slots=True)
class Settings:
    """Everything the console, the AI client and autosave read at start-up."""

    base_url: str = "https://api.openai.com/v1"
    api_key: str = ""
    model: str = "gpt-4o-mini"
    organization: str | None = None
    temperature: float | None = 0.7
    request_timeout: float = 90.0
    max_retries: int = 3
    retry_min_seconds: float = 0.5
    retry_max_seconds: float = 6.0
    history_limit: int = 50
    autosave_delay: float = 1.5
    projects_dir: str | None = None
    persona_prompt: str | None = None
    default_headers: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    debug_logging: bool = False
    last_project_id: str | None = None

    def resolved_projects_dir(self) -> Path:
        if self.projects_dir:
            return Path(self.projects_dir).expanduser()
        return PLOTWEAVER_HOME / "projects"

    def client_settings(self) -> ClientSettings:
        """The subset the AI client needs."""
        return ClientSettings(
            base_url=self.base_url,
            api_key=self.api_key,
            model=self.model,
            organization=self.organization,
            temperature=self.temperature,
            request_timeout=self.request_timeout,
            max_retries=self.max_retries,
            retry_min_seconds=self.retry_min_seconds,
            retry_max_seconds=self.retry_max_seconds,
            default_headers=dict(self.default_headers) or None,
            metadata={str(k): str(v) for k, v in self.metadata.items()} or None,
            debug_logging=self.debug_logging,
        )


# ---------------------------------------------------------------------------
# Secret storage
# ---------------------------------------------------------------------------


class SecretProvider(ABC):
    """A reversible cipher for short secrets such as API keys."""

    name: str = "unknown"

    @abstractmethod
    def encrypt(self, secret: str) -> str:
        ...

    @abstractmethod
    def decrypt(self, token: str) -> str:
        """Raise ``ValueError`` when ``token`` was not produced by this provider."""


class FernetSecretProvider(SecretProvider):
    """Fernet cipher whose key is generated on first use and kept in a file."""

    name = "fernet"

    def __init__(self, key_path: Path | None = None) -> None:
        self.key_path = key_path or PLOTWEAVER_HOME / "settings.key"
        self._cipher: Fernet | None = None

    def encrypt(self, secret: str) -> str:
        return self._fernet().encrypt(secret.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            plaintext = self._fernet().decrypt(token.encode("ascii"))
        except InvalidToken as exc:
            raise ValueError(f"API key token does not match {self.key_path.name}") from exc
        return plaintext.decode("utf-8")

    def _fernet(self) -> Fernet:
        if self._cipher is None:
            if self.key_path.exists():
                key = read_text(self.key_path).strip().encode("ascii")
            else:
                key = Fernet.generate_key()
                write_text(self.key_path, key.decode("ascii"))
                if os.name != "nt":  # pragma: no cover - depends on OS
                    os.chmod(self.key_path, 0o600)
                LOGGER.info("Created settings key at %s", self.key_path)
            self._cipher = Fernet(key)
        return self._cipher


class SecretVault:
    """Wraps a :class:`SecretProvider` and tags tokens as ``<provider>:<token>``."""

    def __init__(self, *, key_path: Path | None = None, provider: SecretProvider | None = None) -> None:
        self._provider = provider or FernetSecretProvider(key_path)

    @property
    def strategy(self) -> str:
        return self._provider.name

    def encrypt(self, secret: str) -> str:
        return f"{self.strategy}:{self._provider.encrypt(secret)}" if secret else ""

    def decrypt(self, token: str | None) -> str:
        if not token:
            return ""
        prefix, sep, body = token.partition(":")
        if not sep:
            return self._provider.decrypt(token)
        if prefix != self.strategy:
            LOGGER.warning("Secret was stored by %r, not %r; leaving it encrypted.", prefix, self.strategy)
            return token
        return self._provider.decrypt(body)


# ---------------------------------------------------------------------------
# Settings file
# ---------------------------------------------------------------------------


class SettingsStore:
    """Reads and writes :class:`Settings` as JSON at ``path``."""

    def __init__(self, path: Path | None = None, *, vault: SecretVault | None = None) -> None:
        self.path = path or DEFAULT_SETTINGS_PATH
        self.vault = vault or SecretVault(key_path=self.path.with_suffix(".key"))

    def load(self, *, overrides: Mapping[str, Any] | None = None) -> Settings:
        """Return the stored settings with CLI ``overrides`` and the environment applied.

        A file in an older format, or one still holding a plaintext key, is
        rewritten in place.
        """

        payload = self._read_payload()
        settings, rewrite = self._from_payload(payload)
        if rewrite:
            try:
                self.save(settings)
            except OSError as exc:
                LOGGER.warning("Could not upgrade settings file %s: %s", self.path, exc)

        if overrides:
            settings = _merge_overrides(settings, overrides, source="CLI")
        return _merge_overrides(settings, _environment_overrides(), source="environment")

    def save(self, settings: Settings) -> Path:
        payload = asdict(settings)
        api_key = payload.pop("api_key") or ""
        if api_key:
            payload[CIPHERTEXT_FIELD] = self.vault.encrypt(api_key)
        payload.update(version=SETTINGS_FORMAT_VERSION, secret_backend=self.vault.strategy)
        write_json(self.path, payload)
        LOGGER.debug("Settings written to %s", self.path)
        return self.path

    def _read_payload(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            payload = read_json(self.path)
        except (OSError, json.JSONDecodeError) as exc:
            LOGGER.warning("Ignoring unreadable settings file %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            LOGGER.warning("Ignoring settings file %s: expected a JSON object", self.path)
            return {}
        return payload

    def _from_payload(self, payload: Dict[str, Any]) -> tuple[Settings, bool]:
        if not payload:
            return Settings(), False

        known = {item.name for item in fields(Settings)} - {"api_key"}
        try:
            settings = Settings(**{key: value for key, value in payload.items() if key in known})
        except TypeError as exc:
            LOGGER.warning("Settings file %s has invalid values: %s", self.path, exc)
            settings = Settings()

        rewrite = payload.get("version") != SETTINGS_FORMAT_VERSION
        if payload.get(CIPHERTEXT_FIELD):
            try:
                settings.api_key = self.vault.decrypt(payload[CIPHERTEXT_FIELD])
            except ValueError as exc:
                LOGGER.warning("Stored API key could not be decrypted: %s", exc)
        elif payload.get("api_key"):
            LOGGER.info("Encrypting plaintext API key found in %s", self.path)
            settings.api_key = payload["api_key"]
            rewrite = True
        return settings, rewrite


def _environment_overrides() -> Dict[str, Any]:
    found: Dict[str, Any] = {}
    for variable, (name, convert) in _ENV_OVERRIDES.items():
        raw = os.environ.get(variable)
        if raw is None:
            continue
        try:
            found[name] = convert(raw)
        except ValueError:
            LOGGER.warning("Ignoring %s=%r: expected %s", variable, raw, convert.__name__)
    return found


def _merge_overrides(settings: Settings, overrides: Mapping[str, Any], *, source: str) -> Settings:
    known = {item.name for item in fields(Settings)}
    changes = {key: value for key, value in overrides.items() if key in known and value is not None}
    if isinstance(changes.get("metadata"), Mapping):
        changes["metadata"] = {**settings.metadata, **changes["metadata"]}
    if not changes:
        return settings
    LOGGER.debug("Applying %s overrides: %s", source, sorted(changes))
    return replace(settings, **changes)


def redact_secret(value: str) -> str:
    """Mask all but the first and last two characters of ``value``."""

    secret = (value or "").strip()
    if len(secret) <= 4:
        return "*" * len(secret)
    hidden = "*" * (len(secret) - 4)
    return secret[:2] + hidden + secret[-2:]
