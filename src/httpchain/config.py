"""Profile storage with XDG paths, atomic writes, and credential resolution.

* **Directory layout** -- XDG Base Directory compliant on Linux/BSD,
  ``~/.httpchain/`` on macOS and Windows. See :func:`get_config_dir`.
* **Profiles** -- one JSON file per API, deserialised into a
  :class:`~httpchain.models.Profile`. Managed via :func:`load_profile`,
  :func:`save_profile`, :func:`delete_profile`, :func:`list_profiles`.
* **Precedence** -- :func:`resolve_profile` picks the profile from the CLI
  flag, then ``HTTPCHAIN_PROFILE``; ``HTTPCHAIN_BASE_URL`` overrides the
  stored base address.
* **Credentials** -- :func:`resolve_credential` reads secrets from env
  vars, files, or literal values.
"""

from __future__ import annotations

import json
import os
import platform
import tempfile
from pathlib import Path
from typing import Optional

from httpchain.exceptions import ConfigError
from httpchain.models import Profile

_APP_NAME = "httpchain"
PROFILE_ENV_VAR = "HTTPCHAIN_PROFILE"
BASE_URL_ENV_VAR = "HTTPCHAIN_BASE_URL"


# --- XDG path resolution ---


def _is_xdg_platform() -> bool:
    """Return True if the platform supports XDG Base Directory spec (Linux/FreeBSD)."""
    return platform.system() == "Linux" or platform.system().endswith("BSD")


def get_config_dir() -> Path:
    """Return the configuration directory, creating it if necessary.

    On Linux/BSD: ``$XDG_CONFIG_HOME/httpchain/`` (default ``~/.config/httpchain/``).
    On macOS/Windows: ``~/.httpchain/``.
    """
    if _is_xdg_platform():
        env_value = os.environ.get("XDG_CONFIG_HOME", "")
        base = Path(env_value) if env_value else Path.home() / ".config"
        path = base / _APP_NAME
    else:
        path = Path.home() / f".{_APP_NAME}"
    path.mkdir(parents=True, exist_ok=True)
    return path


def get_profiles_dir() -> Path:
    """Return ``<config_dir>/profiles/``, creating it if necessary."""
    path = get_config_dir() / "profiles"
    path.mkdir(parents=True, exist_ok=True)
    return path


# --- Atomic file writes ---


def _atomic_write(path: Path, data: str) -> None:
    """Replace *path* with *data* so readers never observe a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    handle, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(handle, "w", encoding="utf-8") as tmp:
            tmp.write(data)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


# --- Profiles ---


def _profile_path(name: str) -> Path:
    if not name or "/" in name or "\\" in name or name.startswith("."):
        raise ConfigError(f"Invalid profile name: {name!r}")
    return get_profiles_dir() / f"{name}.json"


def list_profiles() -> list[str]:
    """Return all profile names, sorted alphabetically."""
    return sorted(p.stem for p in get_profiles_dir().glob("*.json") if p.is_file())


def profile_exists(name: str) -> bool:
    return _profile_path(name).is_file()


def load_profile(name: str) -> Profile:
    """Load and validate a profile from disk.

    Raises:
        ConfigError: If the file does not exist, contains invalid JSON, or
            fails Pydantic validation.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Profile.model_validate(data)
    except (json.JSONDecodeError, ValueError) as exc:
        raise ConfigError(f"Invalid profile '{name}' at {path}: {exc}") from exc


def save_profile(profile: Profile) -> Path:
    """Persist *profile* atomically and return the file path."""
    path = _profile_path(profile.name)
    data = profile.model_dump(mode="json")
    _atomic_write(path, json.dumps(data, indent=2) + "\n")
    return path


def delete_profile(name: str) -> None:
    """Delete a profile's JSON file.

    Raises:
        ConfigError: If the profile does not exist.
    """
    path = _profile_path(name)
    if not path.is_file():
        raise ConfigError(f"Profile '{name}' not found at {path}")
    path.unlink()


def resolve_profile(
    cli_profile: Optional[str] = None,
    cli_base_url: Optional[str] = None,
) -> Optional[Profile]:
    """Pick the active profile and apply base-address overrides.

    Precedence (high to low) for the profile name: CLI flag,
    ``HTTPCHAIN_PROFILE``, the only stored profile when exactly one exists.
    For the base address: CLI flag, ``HTTPCHAIN_BASE_URL``, the profile.

    Returns:
        The resolved profile, or ``None`` when no profile applies. With no
        profile but a base URL override, an ad-hoc profile is returned.
    """
    name = cli_profile or os.environ.get(PROFILE_ENV_VAR) or None
    if name is None:
        stored = list_profiles()
        if len(stored) == 1:
            name = stored[0]

    profile = load_profile(name) if name is not None else None

    base_url = cli_base_url or os.environ.get(BASE_URL_ENV_VAR) or None
    if base_url:
        if profile is None:
            profile = Profile(name="adhoc")
        profile.base_url = base_url
    return profile


# --- Credential source resolution ---


def _read_env(name: str) -> str:
    value = os.environ.get(name)
    if value is None:
        raise ConfigError(f"Credential variable ${name} is not set")
    return value


def _read_file(name: str) -> str:
    path = Path(name).expanduser()
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError as exc:
        raise ConfigError(f"Credential file {path} does not exist") from exc
    except OSError as exc:
        raise ConfigError(f"Credential file {path} is not readable: {exc}") from exc


_CREDENTIAL_READERS = {
    "env": _read_env,
    "file": _read_file,
    "value": lambda literal: literal,
}


def resolve_credential(source: Optional[str]) -> str:
    """Turn a ``kind:argument`` descriptor into the secret it points at.

    ``env:NAME`` reads an environment variable, ``file:PATH`` reads a file
    (surrounding whitespace stripped) and ``value:TEXT`` is the text itself.

    Raises:
        ConfigError: For an empty or unknown descriptor, or a secret that
            cannot be read.
    """
    if not source:
        raise ConfigError("No credential source configured")
    kind, sep, argument = source.partition(":")
    reader = _CREDENTIAL_READERS.get(kind) if sep else None
    if reader is None:
        raise ConfigError(
            f"Unknown credential source '{source}' (expected env:, file: or value:)"
        )
    return reader(argument)
