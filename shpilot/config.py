import os
import json
import math

from dataclasses import dataclass
from typing import Dict, Mapping, Optional

PROVIDERS = ("gemini", "aisuite")
DEFAULT_PROVIDER = "gemini"
DEFAULT_TIMEOUT = 30.0
DEFAULT_CONFIG_PATH = os.path.join("~", ".shpilot", "config.json")
CONFIG_PATH_ENV_VAR = "SHPILOT_CONFIG"


class ConfigError(Exception):
    pass


@dataclass(frozen=True)
class RunConfig:
    """Everything a single invocation needs, assembled once at startup."""

    query: str
    show_raw: bool = False
    verbose: bool = False
    provider: str = DEFAULT_PROVIDER
    model: Optional[str] = None
    timeout: float = DEFAULT_TIMEOUT


def config_path(environ: Optional[Mapping[str, str]] = None) -> str:
    environ = os.environ if environ is None else environ
    return os.path.expanduser(environ.get(CONFIG_PATH_ENV_VAR) or DEFAULT_CONFIG_PATH)


def load_config_file(path: str) -> Dict:
    """
    Reads the optional JSON defaults file.

    A missing file is not an error: the built-in defaults apply. Only the
    `provider`, `model` and `timeout` keys are used; anything else is ignored.
    """
    if not os.path.exists(path):
        return {}

    try:
        with open(path, "r") as config_file:
            data = json.load(config_file)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Error reading or parsing {path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object.")

    return {key: data[key] for key in ("provider", "model", "timeout") if key in data}


def build_run_config(
    query: str,
    show_raw: bool = False,
    verbose: bool = False,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    timeout: Optional[float] = None,
    defaults: Optional[Dict] = None,
) -> RunConfig:
    """Layers the command-line values over the file defaults and validates the result."""
    defaults = defaults or {}

    provider = provider or defaults.get("provider") or DEFAULT_PROVIDER
    if not isinstance(provider, str):
        raise ConfigError(f"Invalid provider {provider!r}, expected a string.")
    if provider not in PROVIDERS:
        raise ConfigError(
            f"Unknown provider '{provider}'. Choose one of: {', '.join(PROVIDERS)}."
        )

    if timeout is None:
        timeout = defaults.get("timeout", DEFAULT_TIMEOUT)
    try:
        timeout = float(timeout)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid timeout '{timeout}'.")
    if not math.isfinite(timeout) or timeout <= 0:
        raise ConfigError("timeout must be a positive, finite number of seconds.")

    model = model or defaults.get("model") or None
    if model is not None and not isinstance(model, str):
        raise ConfigError(f"Invalid model {model!r}, expected a string.")

    return RunConfig(
        query=query,
        show_raw=show_raw,
        verbose=verbose,
        provider=provider,
        model=model,
        timeout=timeout,
    )
