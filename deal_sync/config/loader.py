"""Configuration loading helpers for deal-sync."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path

import yaml

from .models import Credentials, SyncConfig

CONFIG_EXTENSIONS = (".yaml", ".yml", ".json")
CONFIG_FILENAME = "deal_sync.yaml"
HOME_ENV_VAR = "DEAL_SYNC_HOME"


def _read_file(path: Path) -> dict:
    text = path.read_text(encoding="utf-8")
    if path.suffix in (".yaml", ".yml"):
        data = yaml.safe_load(text) or {}
    else:
        data = json.loads(text)
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {path}")
    return data


def _write_file(path: Path, payload: dict) -> None:
    with path.open("w", encoding="utf-8") as stream:
        if path.suffix in (".yaml", ".yml"):
            yaml.safe_dump(payload, stream, allow_unicode=True, sort_keys=False)
        else:
            json.dump(payload, stream, indent=2, ensure_ascii=False)


@dataclass(slots=True)
class ConfigLocator:
    """Resolve important paths from project root."""

    project_root: Path | None = None
    data_dir: Path | None = None
    outputs_dir: Path | None = None
    logs_dir: Path | None = None

    def __post_init__(self) -> None:
        env_root = os.environ.get(HOME_ENV_VAR)
        if env_root:
            root = Path(env_root).expanduser().resolve()
        else:
            root = (self.project_root or Path(__file__).resolve().parents[2]).resolve()
        self.project_root = root
        self.data_dir = (root / "data").resolve()
        self.outputs_dir = (self.data_dir / "outputs").resolve()
        self.logs_dir = (root / "logs").resolve()
        self.ensure_directories()

    def ensure_directories(self) -> None:
        for directory in (self.data_dir, self.outputs_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)

    def config_path(self) -> Path:
        return self.data_dir / CONFIG_FILENAME

    def env_file(self) -> Path:
        return self.project_root / ".env"


class ConfigRepository:
    """Repository encapsulating config IO and schema validation."""

    def __init__(self, locator: ConfigLocator | None = None, path: Path | None = None) -> None:
        self.locator = locator or ConfigLocator()
        self._path = path
        self._cache: SyncConfig | None = None

    @property
    def path(self) -> Path:
        return self._path or self.locator.config_path()

    def load(self) -> SyncConfig:
        if self._cache is not None:
            return self._cache
        path = self.path
        if path.exists():
            if path.suffix not in CONFIG_EXTENSIONS:
                raise ValueError(f"Unsupported configuration format: {path}")
            config = SyncConfig.model_validate(_read_file(path))
        else:
            config = SyncConfig()
            self.save(config)
        self._cache = self._resolve_paths(config)
        return self._cache

    def save(self, config: SyncConfig) -> Path:
        path = self.path
        path.parent.mkdir(parents=True, exist_ok=True)
        _write_file(path, config.model_dump(mode="json"))
        self._cache = None
        return path

    def load_credentials(self) -> Credentials:
        env_file = self.locator.env_file()
        if env_file.exists():
            return Credentials(_env_file=env_file)
        return Credentials()

    def _resolve_paths(self, config: SyncConfig) -> SyncConfig:
        outputs_dir = config.output.outputs_dir
        if outputs_dir.is_absolute():
            return config
        resolved = (self.locator.project_root / outputs_dir).resolve()
        output = config.output.model_copy(update={"outputs_dir": resolved})
        return config.model_copy(update={"output": output})


__all__ = ["CONFIG_EXTENSIONS", "ConfigLocator", "ConfigRepository"]
