"""Config file discovery and loading.

Walk-up finder locates arbiter.toml, similar to how git finds .git/.
Supports ARBITER_CONFIG env var and --config CLI flag overrides.
"""

from __future__ import annotations

import os
import tomllib
from pathlib import Path
from typing import Any

from arbiter.config.models import ArbiterConfig

CONFIG_FILENAME = "arbiter.toml"
CONFIG_ENV_VAR = "ARBITER_CONFIG"


def find_config(start: Path | None = None) -> Path | None:
    """Walk up from *start* (default: cwd) looking for arbiter.toml.

    Returns the path to the config file, or None if not found.
    Checks ARBITER_CONFIG env var first.
    """
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        p = Path(env_path)
        return p if p.is_file() else None

    current = (start or Path.cwd()).resolve()
    for directory in (current, *current.parents):
        candidate = directory / CONFIG_FILENAME
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path | None = None, cwd: Path | None = None) -> ArbiterConfig:
    """Load and validate config from a TOML file.

    Returns the default ArbiterConfig if no file is found.
    """
    if path is None:
        path = find_config(cwd)
    if path is None:
        return ArbiterConfig()

    data: dict[str, Any] = tomllib.loads(path.read_text(encoding="utf-8"))
    return ArbiterConfig.model_validate(data)
