from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence

import uvicorn

from .app import DEFAULT_HOST, DEFAULT_PORT, DEFAULT_SETTINGS_PATH, ServerConfig, create_app


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="CoverForge cover editor backend")
    parser.add_argument("--host", default=DEFAULT_HOST, help="Host interface to bind to")
    parser.add_argument("--port", type=int, default=DEFAULT_PORT, help="Port to listen on")
    parser.add_argument(
        "--settings",
        type=Path,
        default=DEFAULT_SETTINGS_PATH,
        help="YAML settings file with session defaults and export options",
    )
    parser.add_argument(
        "--font-dir",
        type=Path,
        action="append",
        default=[],
        help="Extra directory searched for preset fonts (repeatable)",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Path to the editor log file")
    parser.add_argument("--log-level", default="info", help="Uvicorn log level")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> None:
    args = parse_args(argv)
    config = ServerConfig(
        host=args.host,
        port=args.port,
        settings_path=args.settings,
        log_path=args.log_file,
        font_dirs=list(args.font_dir),
    )
    app = create_app(config)
    uvicorn.run(app, host=config.host, port=config.port, log_level=args.log_level)


if __name__ == "__main__":  # pragma: no cover
    main()
