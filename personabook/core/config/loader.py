"""Reading config.yaml into a validated Config.

Secrets stay out of the file: any string value may reference ``${VAR}``,
which is filled from the environment (and from ``.env`` once the CLI has
called ``load_dotenv``). A reference that is still unresolved after
expansion is an error rather than a literal token or API key.
"""

import os
import re
from collections.abc import Callable
from pathlib import Path
from typing import Any

import yaml

from personabook.core.config.models import Config

ENV_REF = re.compile(r"\$\{([^}]+)\}")


def _map_strings(obj: Any, fn: Callable[[str], Any]) -> Any:
    """Apply ``fn`` to every string inside nested dicts and lists."""
    if isinstance(obj, dict):
        return {key: _map_strings(value, fn) for key, value in obj.items()}
    if isinstance(obj, list):
        return [_map_strings(item, fn) for item in obj]
    if isinstance(obj, str):
        return fn(obj)
    return obj


def expand_env_vars(value: str) -> str:
    """Replace ``${VAR}`` with its environment value; unknown names are kept."""
    return ENV_REF.sub(lambda m: os.environ.get(m.group(1), m.group(0)), value)


def check_unexpanded_vars(data: Any, source: str) -> None:
    """Fail if any ``${VAR}`` reference survived expansion.

    Raises:
        ValueError: Naming every unresolved variable and ``source``.
    """
    missing: set[str] = set()
    _map_strings(data, lambda s: missing.update(ENV_REF.findall(s)))
    if missing:
        names = ", ".join(f"${{{name}}}" for name in sorted(missing))
        raise ValueError(
            f"Unresolved environment variable(s) in {source}: {names}. "
            f"Set these variables or remove the ${{VAR}} references."
        )


def load_config(path: Path | str) -> Config:
    """Load, expand and validate the YAML config at ``path``.

    An empty file yields the defaults.

    Raises:
        FileNotFoundError: No file at ``path``.
        yaml.YAMLError: The file is not valid YAML.
        ValueError: A ``${VAR}`` reference could not be resolved.
        pydantic.ValidationError: A value is out of range or mistyped.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with config_path.open() as f:
        data = yaml.safe_load(f) or {}

    data = _map_strings(data, expand_env_vars)
    check_unexpanded_vars(data, source=str(config_path))
    return Config(**data)
