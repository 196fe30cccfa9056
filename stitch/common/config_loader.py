"""Configuration loading and validation."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping

from stitch.common.errors import ConfigError
from stitch.common.fs import read_yaml
from stitch.common.models import BackendDescriptor, DedupeRules
from stitch.common.schema import validate_stitch_config

_ENV_KEY_ALIASES = {
    "baseUrl": "base_url",
    "apiKey": "api_key",
    "rateLimitPerSec": "rate_limit_per_sec",
}
_CAST_NAMES = {int: "an integer", float: "a number", list: "a list"}


@dataclass(frozen=True)
class HttpSettings:
    connect_timeout: float = 5.0
    read_timeout: float = 15.0
    max_attempts: int = 3
    max_wait: float = 5.0


@dataclass(frozen=True)
class CacheSettings:
    enabled: bool = False
    max_entries: int = 1000


@dataclass(frozen=True)
class StitchConfig:
    geocoders: tuple[BackendDescriptor, ...]
    backup_geocoders: tuple[BackendDescriptor | None, ...]
    transit: BackendDescriptor
    dedupe: DedupeRules = field(default_factory=DedupeRules)
    cache: CacheSettings = field(default_factory=CacheSettings)
    http: HttpSettings = field(default_factory=HttpSettings)
    custom_result_limit: int | None = None
    max_workers: int | None = None


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Config file not found: {path}")
    base = read_yaml(path) or {}
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    if not overlay:
        return base
    return _deep_merge(base, overlay)


def _convert(value: Any, cast: Callable[[Any], Any], ctx: str) -> Any:
    try:
        return cast(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{ctx} must be {_CAST_NAMES.get(cast, cast.__name__)}, got {value!r}") from exc


def _descriptor(cfg: dict, default_name: str, ctx: str) -> BackendDescriptor:
    rate = cfg.get("rate_limit_per_sec")
    return BackendDescriptor(
        name=str(cfg.get("name") or default_name),
        type=str(cfg["type"]).upper(),
        base_url=str(cfg["base_url"]).rstrip("/") if cfg.get("base_url") else None,
        api_key=cfg.get("api_key"),
        params={str(k): str(v) for k, v in (cfg.get("params") or {}).items()},
        rate_limit_per_sec=_convert(rate, float, f"{ctx}.rate_limit_per_sec") if rate is not None else None,
    )


def _optional_int(value: Any, ctx: str) -> int | None:
    if value is None or value == "":
        return None
    return _convert(value, int, ctx)


def build_stitch_config(raw: dict, *, allow_unknown: bool = False) -> StitchConfig:
    cfg = validate_stitch_config(raw, allow_unknown=allow_unknown)

    geocoders = tuple(
        _descriptor(item, f"{str(item['type']).lower()}_{idx}", f"geocoders[{idx}]")
        for idx, item in enumerate(cfg["geocoders"])
    )
    raw_backups = cfg.get("backup_geocoders") or [None] * len(geocoders)
    backups = tuple(
        _descriptor(item, f"backup_{str(item['type']).lower()}_{idx}", f"backup_geocoders[{idx}]")
        if item is not None
        else None
        for idx, item in enumerate(raw_backups)
    )
    transit = _descriptor(cfg["transit"], "transit", "transit")

    dedupe_cfg = cfg.get("dedupe") or {}
    defaults = DedupeRules()
    prefixes = dedupe_cfg.get("transit_category_prefixes", defaults.transit_category_prefixes)
    if isinstance(prefixes, str):
        prefixes = [prefixes]
    dedupe = DedupeRules(
        check_name_duplicates=bool(dedupe_cfg.get("check_name_duplicates", defaults.check_name_duplicates)),
        max_distance=_convert(dedupe_cfg.get("max_distance", defaults.max_distance), float, "dedupe.max_distance"),
        precision_digits=_convert(
            dedupe_cfg.get("precision_digits", defaults.precision_digits), int, "dedupe.precision_digits"
        ),
        transit_category_prefixes=tuple(
            str(prefix) for prefix in _convert(prefixes, list, "dedupe.transit_category_prefixes")
        ),
    )

    cache_cfg = cfg.get("cache") or {}
    cache = CacheSettings(
        enabled=bool(cache_cfg.get("enabled", False)),
        max_entries=_convert(cache_cfg.get("max_entries", CacheSettings.max_entries), int, "cache.max_entries"),
    )

    http_cfg = cfg.get("http") or {}
    http = HttpSettings(
        connect_timeout=_convert(
            http_cfg.get("connect_timeout", HttpSettings.connect_timeout), float, "http.connect_timeout"
        ),
        read_timeout=_convert(http_cfg.get("read_timeout", HttpSettings.read_timeout), float, "http.read_timeout"),
        max_attempts=_convert(http_cfg.get("max_attempts", HttpSettings.max_attempts), int, "http.max_attempts"),
        max_wait=_convert(http_cfg.get("max_wait", HttpSettings.max_wait), float, "http.max_wait"),
    )

    return StitchConfig(
        geocoders=geocoders,
        backup_geocoders=backups,
        transit=transit,
        dedupe=dedupe,
        cache=cache,
        http=http,
        custom_result_limit=_optional_int(cfg.get("custom_result_limit"), "custom_result_limit"),
        max_workers=_optional_int(cfg.get("max_workers"), "max_workers"),
    )


def load_config(
    path: Path,
    *,
    overlay_path: Path | None = None,
    allow_unknown: bool = False,
) -> StitchConfig:
    return build_stitch_config(_load_yaml_with_overlay(path, overlay_path), allow_unknown=allow_unknown)


def _json_env(environ: Mapping[str, str], key: str) -> Any:
    raw = environ.get(key)
    if raw is None or raw.strip() == "":
        return None
    try:
        return json.loads(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} is not valid JSON") from exc


def _snake_keys(item: Any) -> Any:
    if not isinstance(item, dict):
        return item
    return {_ENV_KEY_ALIASES.get(key, key): value for key, value in item.items()}


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() not in {"false", "0", "no", "off"}


def load_config_from_env(environ: Mapping[str, str] | None = None) -> StitchConfig:
    env = os.environ if environ is None else environ

    geocoders = _json_env(env, "GEOCODERS")
    if geocoders is None:
        raise ConfigError("GEOCODERS is not set")
    if not isinstance(geocoders, list):
        raise ConfigError("GEOCODERS must be a JSON array")
    backups = _json_env(env, "BACKUP_GEOCODERS")

    transit = _json_env(env, "TRANSIT_GEOCODER")
    if transit is None:
        custom_url = env.get("CUSTOM_PELIAS_URL")
        if not custom_url:
            raise ConfigError("Either TRANSIT_GEOCODER or CUSTOM_PELIAS_URL must be set")
        sources = "transit,pelias" if _env_bool(env.get("CSV_ENABLED"), False) else "transit"
        transit = {"name": "transit", "type": "PELIAS", "base_url": custom_url, "params": {"sources": sources}}

    raw: dict[str, Any] = {
        "geocoders": [_snake_keys(item) for item in geocoders],
        "transit": _snake_keys(transit),
        "dedupe": {
            "check_name_duplicates": _env_bool(env.get("CHECK_NAME_DUPLICATES"), True),
        },
        "cache": {"enabled": _env_bool(env.get("CACHE_ENABLED"), False)},
    }
    if backups is not None:
        if not isinstance(backups, list):
            raise ConfigError("BACKUP_GEOCODERS must be a JSON array")
        raw["backup_geocoders"] = [_snake_keys(item) for item in backups]
    digits = _optional_int(env.get("COORDINATE_COMPARISON_PRECISION_DIGITS"), "COORDINATE_COMPARISON_PRECISION_DIGITS")
    if digits is not None:
        raw["dedupe"]["precision_digits"] = digits
    limit = env.get("CUSTOM_RESULT_LIMIT")
    if limit:
        raw["custom_result_limit"] = limit

    # Deployment env blobs often carry keys this loader does not use.
    return build_stitch_config(raw, allow_unknown=True)
