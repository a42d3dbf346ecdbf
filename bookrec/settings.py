import json
import os
from pathlib import Path
from typing import Any, Callable, Dict, Mapping, Optional, Tuple


DEFAULT_SETTINGS: Dict[str, Any] = {
    "host": "0.0.0.0",
    "port": 3000,
    "log_file": "data/server.log",
    "ollama": {
        "base_url": "http://127.0.0.1:11434",
        "timeout": None,
    },
    "recommend": {
        "default_model": "llama2",
        "temperature": 0.7,
    },
}


def _optional_float(value: str) -> Optional[float]:
    return float(value) if value.strip() else None


# Environment variable -> (setting path, parser)
ENV_OVERRIDES: Dict[str, Tuple[Tuple[str, ...], Callable[[str], Any]]] = {
    "HOST": (("host",), str),
    "PORT": (("port",), int),
    "BOOKREC_LOG_FILE": (("log_file",), str),
    "OLLAMA_BASE_URL": (("ollama", "base_url"), str),
    "OLLAMA_TIMEOUT": (("ollama", "timeout"), _optional_float),
}


class SettingsManager:
    """
    Loads gateway configuration.

    Defaults are overlaid by an optional hand-edited JSON file, then by the
    environment variables listed in ``ENV_OVERRIDES``.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ) -> None:
        if path is None:
            env_path = (environ if environ is not None else os.environ).get("BOOKREC_SETTINGS")
            path = Path(env_path) if env_path else None
        self.path = path
        self.environ = environ
        self._settings: Dict[str, Any] | None = None

    @property
    def settings(self) -> Dict[str, Any]:
        if self._settings is None:
            self._settings = self._load()
        return self._settings

    def reload(self) -> Dict[str, Any]:
        self._settings = self._load()
        return self._settings

    def _load(self) -> Dict[str, Any]:
        merged = json.loads(json.dumps(DEFAULT_SETTINGS))
        if self.path is not None and self.path.exists():
            with self.path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            _deep_update(merged, data)
        _apply_env(merged, self.environ if self.environ is not None else os.environ)
        return merged


def _apply_env(target: Dict[str, Any], environ: Mapping[str, str]) -> None:
    for name, (keys, parse) in ENV_OVERRIDES.items():
        raw = environ.get(name)
        if raw is None:
            continue
        try:
            value = parse(raw)
        except ValueError as exc:
            raise ValueError(f"Invalid value for {name}: {raw!r}") from exc
        node = target
        for key in keys[:-1]:
            node = node.setdefault(key, {})
        node[keys[-1]] = value


def _deep_update(target: Dict[str, Any], source: Dict[str, Any]) -> None:
    """
    Recursively update a mapping, preserving nested structures.
    """
    for key, value in source.items():
        if isinstance(value, dict) and isinstance(target.get(key), dict):
            _deep_update(target[key], value)
        else:
            target[key] = value
