"""Configuration loader for the bot and its response cache."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import yaml

from command_cache import CacheStore


@dataclass(frozen=True)
class CacheConfig:
    default_ttl_sec: float
    max_entries: int
    max_memory_mb: float
    sweep_interval_sec: float
    command_ttls: Dict[str, float] = field(default_factory=dict)

    @property
    def max_memory_bytes(self) -> int:
        return int(self.max_memory_mb * 1024 * 1024)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheConfig":
        return cls(
            default_ttl_sec=float(data.get("default_ttl_sec", 120)),
            max_entries=int(data.get("max_entries", 200)),
            max_memory_mb=float(data.get("max_memory_mb", 100)),
            sweep_interval_sec=float(data.get("sweep_interval_sec", 60)),
            command_ttls={
                str(name): float(ttl) for name, ttl in (data.get("command_ttls") or {}).items()
            },
        )

    def build_store(self, clock: Optional[Callable[[], float]] = None) -> CacheStore:
        kwargs: Dict[str, Any] = {}
        if clock is not None:
            kwargs["clock"] = clock
        return CacheStore(
            max_entries=self.max_entries,
            max_memory_bytes=self.max_memory_bytes,
            default_ttl_sec=self.default_ttl_sec,
            sweep_interval_sec=self.sweep_interval_sec,
            command_ttls=self.command_ttls,
            **kwargs,
        )


@dataclass(frozen=True)
class RegistrationConfig:
    endpoint: Optional[str]
    timeout_sec: int


@dataclass(frozen=True)
class BotConfig:
    application_id: Optional[str]
    log_level: str
    cache: CacheConfig
    registration: RegistrationConfig

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BotConfig":
        reg_data = data.get("registration") or {}
        application_id = data.get("application_id")
        return cls(
            application_id=str(application_id) if application_id is not None else None,
            log_level=str(data.get("log_level", "INFO")).upper(),
            cache=CacheConfig.from_dict(data.get("cache") or {}),
            registration=RegistrationConfig(
                endpoint=reg_data.get("endpoint") or None,
                timeout_sec=int(reg_data.get("timeout_sec", 30)),
            ),
        )


ENV_MAP = {
    "application_id": "BOT_APPLICATION_ID",
    "log_level": "LOG_LEVEL",
    "registration.endpoint": "REGISTRATION_ENDPOINT",
    "registration.timeout_sec": "REGISTRATION_TIMEOUT_SEC",
    "cache.default_ttl_sec": "CACHE_DEFAULT_TTL_SEC",
    "cache.max_entries": "CACHE_MAX_ENTRIES",
    "cache.max_memory_mb": "CACHE_MAX_MEMORY_MB",
    "cache.sweep_interval_sec": "CACHE_SWEEP_INTERVAL_SEC",
}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        value: Any = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        last = parts[-1]
        if last in {"max_entries", "timeout_sec"}:
            value = int(value)
        elif last in {"default_ttl_sec", "max_memory_mb", "sweep_interval_sec"}:
            value = float(value)
        target[last] = value

    return merged


def load_config(config_path: str | Path = "config/bot.defaults.yml") -> BotConfig:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    return BotConfig.from_dict(data)
