from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from vclient.errors import ConfigError

DEFAULT_CONFIG_PATH = "~/.config/vclient.conf"


@dataclass(frozen=True)
class Credential:
    username: str
    password: str = field(repr=False)


def load_credentials(path: str | Path = DEFAULT_CONFIG_PATH) -> Credential:
    """Read the username (first line) and password (second line) from ``path``."""
    config_path = Path(path).expanduser()
    try:
        lines = config_path.read_text(encoding="utf-8").splitlines()
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to open config file {str(config_path)!r}: {exc}") from exc

    username = lines[0] if len(lines) > 0 else ""
    password = lines[1] if len(lines) > 1 else ""
    if not username or not password:
        raise ConfigError(f"Invalid login or password in config file {str(config_path)!r}.")
    return Credential(username, password)
