"""CLI entrypoint for placelens."""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .controller import MapController
from .export import EXPORT_FORMATS, write_export, write_layers
from .io_data import LocalDataRepository
from .legend import build_legend, format_legend_lines
from .preview import PreviewRenderer
from .session import DataSource, apply_session, format_session_lines, load_session
from .store import RestStore
from .util import ensure_directories, sha256_file, setup_logging
from .validate import Validator, format_report_lines

LOGGER = logging.getLogger("placelens.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="placelens",
        description="Compose trade-area and home-zipcode map layers around a reference place.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument("--config", default="config.yaml", help="Path to YAML config.")
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    def add_session(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--session",
            required=True,
            help="YAML/JSON file with filters, selection and overlay requests.",
        )

    validate_p = subparsers.add_parser("validate", help="Validate config and data files.")
    add_common(validate_p)

    compose_p = subparsers.add_parser("compose", help="Compose layers and write them as JSON.")
    add_common(compose_p)
    add_session(compose_p)
    compose_p.add_argument(
        "--output",
        default=None,
        help="Layers JSON path. Defaults to <output_dir>/layers.json.",
    )

    legend_p = subparsers.add_parser("legend", help="Print legend entries for a session.")
    add_common(legend_p)
    add_session(legend_p)

    export_p = subparsers.add_parser("export", help="Export the session state as JSON or CSV.")
    add_common(export_p)
    add_session(export_p)
    export_p.add_argument("--format", choices=EXPORT_FORMATS, default="json", help="Export format.")
    export_p.add_argument(
        "--output",
        default=None,
        help="Export path. Defaults to <output_dir>/placelens-export.<format>.",
    )

    preview_p = subparsers.add_parser("preview", help="Render a static PNG preview.")
    add_common(preview_p)
    add_session(preview_p)
    preview_p.add_argument(
        "--output",
        default=None,
        help="Image path. Defaults to <output_dir>/preview.<format>.",
    )

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    log_path = cfg.paths.logs_dir / "placelens.log"
    setup_logging(log_path, verbose=args.verbose)
    ensure_directories(cfg.paths.build_directories)
    return cfg


def _data_source(cfg: AppConfig) -> DataSource:
    if cfg.data.source == "store":
        return RestStore(cfg.store)
    return LocalDataRepository.from_config(cfg)


def _prepare_controller(cfg: AppConfig, session_path: str) -> MapController | None:
    source = _data_source(cfg)
    controller = MapController(cfg)
    controller.load_places(source.load_places())
    spec = load_session(Path(session_path))
    report = apply_session(controller, spec, source)
    for line in format_session_lines(report):
        LOGGER.info(line)
    if not report.ok:
        LOGGER.error("Session could not be applied.")
        return None
    return controller


def _output_path(cfg: AppConfig, raw: str | None, default_name: str) -> Path:
    return Path(raw) if raw else cfg.paths.output_dir / default_name


def _run_validate(cfg: AppConfig) -> int:
    report = Validator(cfg).run()
    for line in format_report_lines(report):
        LOGGER.info(line)
    return 0 if report.ok else 1


def _run_compose(cfg: AppConfig, *, session_path: str, output: str | None) -> int:
    controller = _prepare_controller(cfg, session_path)
    if controller is None:
        return 1
    layers = controller.compose()
    path = write_layers(layers, _output_path(cfg, output, "layers.json"))
    LOGGER.info("Composed %d layers", len(layers))
    LOGGER.info("Layers written to %s (sha256=%s)", path, sha256_file(path))
    return 0


def _run_legend(cfg: AppConfig, *, session_path: str) -> int:
    controller = _prepare_controller(cfg, session_path)
    if controller is None:
        return 1
    items = build_legend(controller.compose())
    if not items:
        LOGGER.info("Legend is empty: no layers are shown.")
    for line in format_legend_lines(items):
        LOGGER.info(line)
    return 0


def _run_export(cfg: AppConfig, *, session_path: str, fmt: str, output: str | None) -> int:
    controller = _prepare_controller(cfg, session_path)
    if controller is None:
        return 1
    path = write_export(
        controller,
        _output_path(cfg, output, f"placelens-export.{fmt}"),
        fmt=fmt,
    )
    LOGGER.info("Export written to %s", path)
    return 0


def _run_preview(cfg: AppConfig, *, session_path: str, output: str | None) -> int:
    controller = _prepare_controller(cfg, session_path)
    if controller is None:
        return 1
    renderer = PreviewRenderer(cfg.preview)
    try:
        path = renderer.render(
            controller.compose(),
            _output_path(cfg, output, f"preview.{cfg.preview.format}"),
        )
    except ValueError as exc:
        LOGGER.error("Preview failed: %s", exc)
        return 1
    if renderer.basemap_warning:
        LOGGER.warning(renderer.basemap_warning)
    LOGGER.info("Preview written to %s", path)
    return 0


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    command = str(args.command)
    if command == "validate":
        return _run_validate(cfg)
    if command == "compose":
        return _run_compose(cfg, session_path=args.session, output=args.output)
    if command == "legend":
        return _run_legend(cfg, session_path=args.session)
    if command == "export":
        return _run_export(cfg, session_path=args.session, fmt=str(args.format), output=args.output)
    if command == "preview":
        return _run_preview(cfg, session_path=args.session, output=args.output)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
