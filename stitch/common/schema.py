"""Minimal strict schemas for stitcher config validation."""

from __future__ import annotations

from stitch.common.constants import BACKEND_TYPES
from stitch.common.errors import ConfigError

TOP_REQUIRED = {"geocoders", "transit"}
TOP_KNOWN = TOP_REQUIRED | {
    "backup_geocoders",
    "dedupe",
    "cache",
    "http",
    "custom_result_limit",
    "max_workers",
}
DESCRIPTOR_KNOWN = {"name", "type", "base_url", "api_key", "params", "rate_limit_per_sec"}
DEDUPE_KNOWN = {"check_name_duplicates", "max_distance", "precision_digits", "transit_category_prefixes"}
CACHE_KNOWN = {"enabled", "max_entries"}
HTTP_KNOWN = {"connect_timeout", "read_timeout", "max_attempts", "max_wait"}
POSITIVE_INT_KEYS = ("custom_result_limit", "max_workers")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def _assert_positive_int(value: object, ctx: str) -> None:
    if value is None or value == "":
        return
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{ctx} must be an integer, got {value!r}") from exc
    if number < 1:
        raise ConfigError(f"{ctx} must be at least 1, got {value!r}")


def _assert_mapping(obj: object, ctx: str) -> dict:
    if not isinstance(obj, dict):
        raise ConfigError(f"{ctx} must be a mapping")
    return obj


def validate_backend_descriptor(cfg: object, ctx: str, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, ctx)
    _assert_required_keys(cfg, {"type"}, ctx)
    _assert_no_unknown_keys(cfg, DESCRIPTOR_KNOWN, ctx, allow_unknown)

    backend_type = str(cfg["type"]).upper()
    if backend_type not in BACKEND_TYPES:
        raise ConfigError(f"Unsupported backend type in {ctx}: {cfg['type']}")
    if backend_type == "PELIAS" and not cfg.get("base_url"):
        raise ConfigError(f"{ctx}.base_url is required for PELIAS backends")
    if backend_type == "HERE" and not cfg.get("api_key"):
        raise ConfigError(f"{ctx}.api_key is required for HERE backends")
    if cfg.get("params") is not None:
        _assert_mapping(cfg["params"], f"{ctx}.params")
    return cfg


def validate_stitch_config(cfg: object, *, allow_unknown: bool = False) -> dict:
    cfg = _assert_mapping(cfg, "stitch config")
    _assert_required_keys(cfg, TOP_REQUIRED, "stitch config")
    _assert_no_unknown_keys(cfg, TOP_KNOWN, "stitch config", allow_unknown)

    geocoders = cfg["geocoders"]
    if not isinstance(geocoders, list) or not geocoders:
        raise ConfigError("geocoders must be a non-empty list")
    for idx, descriptor in enumerate(geocoders):
        validate_backend_descriptor(descriptor, f"geocoders[{idx}]", allow_unknown=allow_unknown)

    backups = cfg.get("backup_geocoders")
    if backups is not None:
        if not isinstance(backups, list):
            raise ConfigError("backup_geocoders must be a list")
        if len(backups) != len(geocoders):
            raise ConfigError(
                f"geocoders and backup_geocoders must be the same length ({len(geocoders)} != {len(backups)})"
            )
        for idx, descriptor in enumerate(backups):
            if descriptor is not None:
                validate_backend_descriptor(descriptor, f"backup_geocoders[{idx}]", allow_unknown=allow_unknown)

    validate_backend_descriptor(cfg["transit"], "transit", allow_unknown=allow_unknown)

    for key in POSITIVE_INT_KEYS:
        _assert_positive_int(cfg.get(key), key)

    for section, known in (("dedupe", DEDUPE_KNOWN), ("cache", CACHE_KNOWN), ("http", HTTP_KNOWN)):
        if cfg.get(section) is not None:
            _assert_no_unknown_keys(_assert_mapping(cfg[section], section), known, section, allow_unknown)

    return cfg
