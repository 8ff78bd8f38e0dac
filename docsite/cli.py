"""CLI entrypoints for docsite commands."""

from __future__ import annotations

import argparse
import shutil
import sys
from pathlib import Path

from .builder import SiteBuilder
from .config import ConfigError, SiteConfig, resolve_config
from .fetch import RepositoryCache
from .logging import configure_logging
from .tree import build_tree, render_tree


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _add_project_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Project directory holding docsite.yml (defaults to current directory).",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Explicit path to the configuration file.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsite",
        description="Build a static documentation site from markdown and GitHub repositories.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Also write debug-level logs to this file.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    build_parser = subparsers.add_parser(
        "build",
        help="Fetch sources, resolve links and write the site.",
    )
    _add_verbose_option(build_parser, suppress_default=True)
    _add_project_options(build_parser)
    build_parser.add_argument(
        "--output",
        default=None,
        help="Output directory (overrides output.directory).",
    )
    build_parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Maximum parallel fetches and renders (overrides build.max_workers).",
    )
    build_parser.add_argument(
        "--offline",
        action="store_true",
        default=None,
        help="Use cached repository mirrors only; never touch the network.",
    )

    tree_parser = subparsers.add_parser(
        "tree",
        help="Print the documentation hierarchy without building.",
    )
    _add_verbose_option(tree_parser, suppress_default=True)
    _add_project_options(tree_parser)

    cache_parser = subparsers.add_parser(
        "cache",
        help="Inspect or clear the repository mirror cache.",
    )
    _add_verbose_option(cache_parser, suppress_default=True)
    cache_parser.add_argument("action", choices=("info", "clear"))
    _add_project_options(cache_parser)

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP build service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docsite commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose), log_file=args.log_file)

    if args.command == "serve":
        from .service import run_service

        run_service(host=args.host, port=args.port)
        return

    try:
        config = resolve_config(
            args.path,
            config_file=args.config,
            output_dir=getattr(args, "output", None),
            max_workers=getattr(args, "workers", None),
            offline=getattr(args, "offline", None),
        )
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "build":
        try:
            report = SiteBuilder(config).build()
        except FileNotFoundError as exc:
            parser.exit(1, f"{exc}\n")
        except Exception as exc:  # pragma: no cover - defensive guard
            parser.exit(1, f"docsite build failed: {exc}\nRun with --verbose for more details.\n")
        print(f"Site written to {_relativize(report.output_dir)}")
        for line in report.summary_lines():
            print(line)
    elif args.command == "tree":
        if not config.source.root.is_dir():
            parser.exit(1, f"Source root not found: {config.source.root}\n")
        tree = build_tree(
            config.source.root,
            hierarchy_file=config.source.hierarchy_file,
            site_title=config.site.title,
            exclude=[config.output.directory, config.cache.directory],
        )
        print(render_tree(tree))
    elif args.command == "cache":
        _run_cache_command(args.action, config)
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def _run_cache_command(action: str, config: SiteConfig) -> None:
    cache = RepositoryCache(config.cache.manifest_file, ttl_hours=config.cache.ttl_hours)
    if action == "info":
        rows = cache.info()
        print(f"Cache file: {_relativize(config.cache.manifest_file)}")
        if not rows:
            print("No cached repositories")
            return
        for row in rows:
            state = "fresh" if row["fresh"] else "stale"
            print(f"{row['key']}: {row['files']} files, fetched {row['fetched_at']} ({state})")
        return

    removed = cache.clear()
    mirror_dir = config.cache.mirror_dir
    if mirror_dir.exists():
        shutil.rmtree(mirror_dir)
    print(f"Removed {removed} cached repositories")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
