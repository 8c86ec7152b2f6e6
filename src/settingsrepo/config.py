from __future__ import annotations

import copy
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

import yaml

if TYPE_CHECKING:
    from .system import Environment


class Config:
    """Configuration for the settings repository host.

    Values from the YAML file are merged over DEFAULT_CONFIG. String values
    may reference {local_user} and {hostname}.
    """

    DEFAULT_CONFIG = {
        "repository": {"dir": "~/.settingsrepo/repository"},
        "application": {"name": "settingsrepo"},
        "upstream": {"url": None, "branch": None},
        "credentials": {"file": "~/.settingsrepo/credentials.yaml"},
    }

    def __init__(
        self,
        config_path: Optional[Path] = None,
        env: Optional[Environment] = None,
    ):
        # Use deepcopy to avoid mutating the class-level DEFAULT_CONFIG
        self.data = copy.deepcopy(self.DEFAULT_CONFIG)
        self.env = env
        self.path = config_path

        if config_path and config_path.exists():
            with open(config_path, "r") as f:
                user_config = yaml.safe_load(f)
                if user_config:
                    self._deep_update(self.data, user_config)

        if self.env:
            self._apply_replacements(self.data)

    def _deep_update(self, base: Dict, update: Dict):
        for k, v in update.items():
            if isinstance(v, dict) and k in base and isinstance(base[k], dict):
                self._deep_update(base[k], v)
            else:
                base[k] = v

    def _apply_replacements(self, data: Any):
        replacements = {
            "local_user": self.env.user if self.env else "user",
            "hostname": self.env.hostname if self.env else "localhost",
        }
        self._walk_and_format(data, replacements)

    def _walk_and_format(self, data: Any, replacements: Dict[str, str]):
        items = data.items() if isinstance(data, dict) else enumerate(data)
        for k, v in list(items):
            if isinstance(v, (dict, list)):
                self._walk_and_format(v, replacements)
            elif isinstance(v, str):
                try:
                    data[k] = v.format(**replacements)
                except (KeyError, IndexError, ValueError):
                    pass

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get a config value by dot-separated path."""
        keys = key_path.split(".")
        value = self.data
        try:
            for key in keys:
                value = value[key]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key_path: str, value: Any):
        keys = key_path.split(".")
        target = self.data
        for key in keys[:-1]:
            target = target.setdefault(key, {})
        target[keys[-1]] = value

    def save(self, path: Optional[Path] = None):
        path = path or self.path
        if path is None:
            raise ValueError("No config path to save to")
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            yaml.safe_dump(self.data, f, default_flow_style=False)

    def get_path(self, key_path: str, home: Optional[Path] = None) -> Path:
        """Resolve a path value, relative paths being under home."""
        path = Path(str(self.get(key_path))).expanduser()
        if not path.is_absolute():
            base = home or (self.env.home if self.env else Path.home())
            path = base / path
        return path

    def get_app_name(self) -> str:
        return str(self.get("application.name") or "settingsrepo")
