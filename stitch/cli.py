"""CLI entrypoint: run one geocoder request across all configured backends."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from stitch.common.config_loader import load_config, load_config_from_env
from stitch.common.constants import API_METHODS, EXIT_BACKEND_FAIL, EXIT_CONFIG_FAIL, EXIT_SUCCESS
from stitch.common.errors import BackendError, ConfigError
from stitch.common.fs import write_json
from stitch.common.ids import generate_request_id
from stitch.common.logging import build_logger, log_event
from stitch.pipeline.orchestrate import Stitcher


def _param(value: str) -> tuple[str, str]:
    key, sep, val = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"Expected KEY=VALUE, got {value!r}")
    return key, val


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("method", choices=API_METHODS)
    parser.add_argument("--param", "-p", dest="params", action="append", type=_param, default=[])
    source = parser.add_mutually_exclusive_group()
    source.add_argument("--config", default="./config/stitch.yml")
    source.add_argument("--from-env", action="store_true")
    parser.add_argument("--overlay-config", default=None)
    parser.add_argument("--request-id", default=None)
    parser.add_argument("--output", default=None)
    parser.add_argument("--log-file", default=None)
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARN", "ERROR"])
    return parser.parse_args(argv)


def run_command(args: argparse.Namespace) -> int:
    request_id = args.request_id or generate_request_id()
    logger = build_logger(
        request_id,
        level=args.log_level,
        log_path=Path(args.log_file) if args.log_file else None,
    )

    try:
        if args.from_env:
            config = load_config_from_env()
        else:
            config = load_config(
                Path(args.config),
                overlay_path=Path(args.overlay_config) if args.overlay_config else None,
            )
    except ConfigError as exc:
        log_event(logger, f"configuration failed: {exc}", request_id=request_id, event="CONFIG_FAIL", status="error", error_code=exc.error_code)
        return EXIT_CONFIG_FAIL

    params = dict(args.params)
    try:
        with Stitcher.from_config(config, logger=logger) as stitcher:
            response = stitcher.run(args.method, params, request_id=request_id)
    except ConfigError as exc:
        log_event(logger, f"configuration failed: {exc}", request_id=request_id, event="CONFIG_FAIL", status="error", error_code=exc.error_code)
        return EXIT_CONFIG_FAIL
    except BackendError as exc:
        log_event(
            logger,
            f"backend failed: {exc}",
            request_id=request_id,
            method=args.method,
            event="REQUEST_FAIL",
            status="error",
            error_code=exc.error_code,
        )
        return EXIT_BACKEND_FAIL

    if args.output:
        write_json(Path(args.output), response)
    else:
        sys.stdout.write(json.dumps(response, ensure_ascii=False))
        sys.stdout.write("\n")
    return EXIT_SUCCESS


def main(argv: list[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    return run_command(args)


if __name__ == "__main__":
    raise SystemExit(main())
