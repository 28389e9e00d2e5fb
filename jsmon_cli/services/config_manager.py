"""
Configuration loading for the CLI.

Settings come from defaults, a `.env` file and `JSMON_*` environment
variables. The API key is resolved from the `--key` flag, then
`~/.jsmon/credentials`, then `JSMON_API_KEY`.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

import structlog
from dotenv import load_dotenv
from pydantic import ValidationError

from jsmon_cli.models.config import CliSettings, Credentials
from jsmon_cli.utils.exceptions import CredentialsError, JsmonError

logger = structlog.get_logger()

ENV_API_KEY = "JSMON_API_KEY"
ENV_WORKSPACE_ID = "JSMON_WORKSPACE_ID"
ENV_BASE_URL = "JSMON_BASE_URL"
ENV_RESUME_FILE = "JSMON_RESUME_FILE"
ENV_TIMEOUT = "JSMON_TIMEOUT"


class ConfigValidationError(JsmonError):
    """Configuration validation failed"""

    pass


def read_credentials_file(path: Path) -> Optional[str]:
    """Return the API key stored in a credentials file.

    The key is the first line that is neither blank nor a ``#`` comment.
    A missing or unreadable file yields None.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            for line in f:
                value = line.strip()
                if value and not value.startswith("#"):
                    return value
    except OSError:
        return None
    return None


def parse_headers(values: Optional[List[str]]) -> Dict[str, str]:
    """Parse repeated ``-H "Name: value"`` options into a dict.

    Raises:
        ConfigValidationError: If an entry has no colon or an empty name
    """
    headers: Dict[str, str] = {}
    for raw in values or []:
        name, sep, value = raw.partition(":")
        name = name.strip()
        if not sep or not name:
            raise ConfigValidationError(
                f"Invalid header '{raw}'. Expected format 'Name: value'"
            )
        headers[name] = value.strip()
    return headers


class ConfigManager:
    """Resolves settings and credentials for one CLI invocation"""

    def __init__(self, credentials_path: Optional[Path] = None, load_env: bool = True):
        self.env_loaded = False
        if load_env:  # pragma: no cover
            load_dotenv()
            self.env_loaded = True
        self._credentials_path = credentials_path
        self._settings: Optional[CliSettings] = None

    def load_settings(self) -> CliSettings:
        """Build settings from defaults and environment overrides"""
        if self._settings:
            return self._settings

        overrides: Dict[str, object] = {}
        if os.getenv(ENV_BASE_URL):
            overrides["base_url"] = os.environ[ENV_BASE_URL]
        if os.getenv(ENV_RESUME_FILE):
            overrides["resume_file"] = os.environ[ENV_RESUME_FILE]
        if os.getenv(ENV_TIMEOUT):
            overrides["request_timeout_seconds"] = os.environ[ENV_TIMEOUT]
        if self._credentials_path is not None:
            overrides["credentials_path"] = self._credentials_path

        try:
            self._settings = CliSettings(**overrides)
        except ValidationError as e:
            raise ConfigValidationError(f"Invalid configuration: {e}")

        logger.debug(
            "settings_loaded",
            base_url=self._settings.base_url,
            resume_file=str(self._settings.resume_file),
        )
        return self._settings

    def resolve_api_key(self, flag_value: Optional[str] = None) -> str:
        """Pick the API key: flag, then credentials file, then environment.

        Raises:
            CredentialsError: If no source provides a key
        """
        if flag_value and flag_value.strip():
            return flag_value.strip()

        settings = self.load_settings()
        from_file = read_credentials_file(settings.credentials_path)
        if from_file:
            logger.debug("api_key_from_file", path=str(settings.credentials_path))
            return from_file

        from_env = os.getenv(ENV_API_KEY, "").strip()
        if from_env:
            return from_env

        raise CredentialsError(
            "No API key found. Pass --key, write it to "
            f"{settings.credentials_path}, or set {ENV_API_KEY}."
        )

    def resolve_workspace(self, flag_value: Optional[str] = None) -> str:
        """Pick the workspace ID: flag, then environment.

        Raises:
            CredentialsError: If neither provides one
        """
        if flag_value and flag_value.strip():
            return flag_value.strip()

        from_env = os.getenv(ENV_WORKSPACE_ID, "").strip()
        if from_env:
            return from_env

        raise CredentialsError(
            f"Workspace ID is required. Pass --wksp or set {ENV_WORKSPACE_ID}."
        )

    def load_credentials(
        self,
        api_key: Optional[str] = None,
        workspace_id: Optional[str] = None,
        headers: Optional[List[str]] = None,
        require_workspace: bool = True,
    ) -> Credentials:
        """Resolve everything a command needs to talk to the API"""
        return Credentials(
            api_key=self.resolve_api_key(api_key),
            workspace_id=(
                self.resolve_workspace(workspace_id)
                if require_workspace
                else (workspace_id or None)
            ),
            headers=parse_headers(headers),
        )
