"""
featlint - Main runner and CLI.

One call to run() is one analysis run: it builds a fresh registry, scans
every file on a thread pool and returns the collected findings.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import LintConfig, load_config
from .errors import ConfigurationError
from .registry import RevisionRegistry
from .reporting import DiagnosticEmitter, Reporter
from .rules import FeatureRevisionsCheck
from .scanner import ProcessedSource, SourceFile, load_sources

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FINDINGS = 1
EXIT_CONFIG_ERROR = 2


def build_check(cfg: LintConfig, reporter: Reporter) -> FeatureRevisionsCheck:
    """Build the check with a new registry. Raises ConfigurationError on a bad pattern."""
    return FeatureRevisionsCheck(
        pattern=cfg.magic_comment_regexp,
        registry=RevisionRegistry(),
        emitter=DiagnosticEmitter(reporter),
    )


def scan_sources(check: FeatureRevisionsCheck, sources: List[SourceFile], workers: int) -> int:
    """Scan sources with up to `workers` threads. Returns the violation count."""
    if workers <= 1:
        return sum(check.scan_file(ProcessedSource(src)) for src in sources)
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="featlint") as pool:
        return sum(pool.map(lambda src: check.scan_file(ProcessedSource(src)), sources))


def run(root: Path, cfg: Optional[LintConfig] = None) -> Reporter:
    """Run the feature revision check and return a Reporter with findings."""
    cfg = cfg or LintConfig(root=root)
    reporter = Reporter()

    if not cfg.enabled:
        logger.info("Feature revision check disabled; skipping %s", root)
        return reporter

    # Validate configuration before touching any file
    check = build_check(cfg, reporter)

    sources = load_sources(cfg)
    violations = scan_sources(check, sources, cfg.workers)
    logger.info(
        "Scanned %d files under %s: %d feature ids, %d violations",
        len(sources), root, len(check.registry), violations,
    )
    reporter.files_scanned = len(sources)
    return reporter


def _read_manifest(manifest_path: Path) -> Optional[tuple[Path, ...]]:
    """Read a JSON manifest: either a list of paths or {"files": [...]}."""
    if not manifest_path.exists():
        raise ConfigurationError("manifest not found", str(manifest_path))
    try:
        manifest_data = json.loads(manifest_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"manifest is not valid JSON: {e}", str(manifest_path)) from e
    if isinstance(manifest_data, list):
        return tuple(Path(f).resolve() for f in manifest_data)
    if isinstance(manifest_data, dict) and "files" in manifest_data:
        return tuple(Path(f).resolve() for f in manifest_data["files"])
    raise ConfigurationError("manifest must be a list or an object with 'files'", str(manifest_path))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="featlint",
        description=f"featlint v{__version__} — feature revision consistency checker",
    )
    parser.add_argument(
        "root",
        nargs="?",
        default=".",
        help="Root directory to scan (default: current directory)",
    )
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--config", metavar="PATH", help="YAML config file (default: <root>/.featlint.yaml)")
    parser.add_argument(
        "--pattern",
        metavar="REGEXP",
        help="Magic comment regexp with 'id' and 'revision' named groups",
    )
    parser.add_argument("--workers", type=int, help="Number of scanning threads")
    parser.add_argument(
        "--files",
        nargs="*",
        metavar="FILE",
        help="Lint only these specific files (disables directory scan)",
    )
    parser.add_argument(
        "--files-from",
        metavar="MANIFEST",
        help="Read file list from JSON manifest (array of paths)",
    )
    parser.add_argument(
        "--watch",
        action="store_true",
        help="Re-run the check whenever a watched file changes",
    )
    parser.add_argument(
        "--debounce",
        type=float,
        default=2.0,
        help="Watch mode debounce in seconds (default: 2.0)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    root = Path(args.root).resolve()

    try:
        explicit_files = None
        if args.files:
            explicit_files = tuple(Path(f).resolve() for f in args.files)
        elif args.files_from:
            explicit_files = _read_manifest(Path(args.files_from))

        cfg = load_config(
            root,
            config_path=Path(args.config) if args.config else None,
            magic_comment_regexp=args.pattern,
            workers=args.workers,
            explicit_files=explicit_files,
        )

        if args.watch:
            from .daemon import run_daemon
            return run_daemon(cfg, debounce_seconds=max(0.0, args.debounce))

        reporter = run(root, cfg)
    except ConfigurationError as e:
        logger.error("%s", e)
        print(str(e), file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.json:
        print(reporter.render_json())
    else:
        if cfg.enabled:
            print(f"Scanned: {reporter.files_scanned} files under {root}")
        else:
            print("Feature revision check disabled")
        print(reporter.render_human())

    return EXIT_FINDINGS if reporter.errors else EXIT_OK


if __name__ == "__main__":
    raise SystemExit(main())
