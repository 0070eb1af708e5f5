"""
featlint - Watch mode.

Re-runs the check when a scannable file under the root changes. The check
is cross-file, so every re-run is a full run with a fresh registry; a
single changed file is never re-checked against an old registry.

Writes a JSON log of every run to ~/.featlint/logs/.

Usage:
    featlint --watch
    featlint --watch --debounce 1.0 path/to/repo
"""

from __future__ import annotations

import json
import logging
import threading
import time
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from . import __version__
from .config import LintConfig, should_exclude_path
from .reporting import Reporter
from .scanner import comment_syntax

logger = logging.getLogger(__name__)


def _get_log_dir() -> Path:
    """Get the log directory, creating if needed."""
    log_dir = Path.home() / ".featlint" / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir


def _get_log_path(log_dir: Optional[Path] = None) -> Path:
    """Get timestamped log file path."""
    ts = datetime.now().strftime("%Y%m%d_%H%M%S")
    return (log_dir or _get_log_dir()) / f"featlint_{ts}.json"


class _ChangeTracker:
    """Thread-safe record of pending changes, used for debouncing."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._paths: Dict[str, float] = {}  # path -> last_ts

    def push(self, path: Path, ts: float) -> None:
        p = str(path)
        with self._lock:
            prev = self._paths.get(p)
            if prev is None or ts > prev:
                self._paths[p] = ts

    def take_if_quiet(self, now: float, debounce_seconds: float) -> List[str]:
        """Pop all pending paths once nothing changed for debounce_seconds."""
        with self._lock:
            if not self._paths:
                return []
            if now - max(self._paths.values()) < debounce_seconds:
                return []
            paths = sorted(self._paths)
            self._paths.clear()
            return paths

    def __len__(self) -> int:
        with self._lock:
            return len(self._paths)


class _SourceChangeHandler(FileSystemEventHandler):
    """Feeds changes to scannable files into a _ChangeTracker."""

    def __init__(self, cfg: LintConfig, tracker: _ChangeTracker) -> None:
        super().__init__()
        self.cfg = cfg
        self.tracker = tracker

    def _note(self, src_path: Any) -> None:
        p = Path(src_path if isinstance(src_path, str) else src_path.decode())
        if comment_syntax(self.cfg, p) is None:
            return
        if should_exclude_path(self.cfg, p):
            return
        self.tracker.push(p, time.time())

    def on_any_event(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        if event.event_type not in ("modified", "created", "deleted", "moved"):
            return
        self._note(event.src_path)
        dest = getattr(event, "dest_path", "")
        if dest:
            self._note(dest)


class _JsonLogger:
    """Appends run results to a JSON log file."""

    def __init__(self, log_path: Path) -> None:
        self.log_path = log_path
        self._lock = threading.Lock()
        self._entries: List[Dict[str, Any]] = []
        self._append({
            "type": "session_start",
            "timestamp": datetime.now().isoformat(),
            "version": __version__,
        })

    def log_run(self, reporter: Reporter, changed: List[str]) -> None:
        """Log the findings of one full run."""
        self._append({
            "type": "run",
            "timestamp": datetime.now().isoformat(),
            "changed": changed,
            "files_scanned": reporter.files_scanned,
            "error_count": len(reporter.errors),
            "findings": [asdict(f) for f in reporter.sorted_findings()],
        })

    def _append(self, entry: Dict[str, Any]) -> None:
        with self._lock:
            self._entries.append(entry)
            self.log_path.write_text(json.dumps(self._entries, indent=2, default=str))


def _full_run(cfg: LintConfig, json_log: _JsonLogger, changed: List[str]) -> int:
    from .runner import run
    reporter = run(cfg.root, cfg)
    print(reporter.render_human())
    json_log.log_run(reporter, changed)
    return 1 if reporter.errors else 0


def run_daemon(
    cfg: LintConfig,
    debounce_seconds: float = 2.0,
    interval: float = 0.5,
    log_dir: Optional[Path] = None,
) -> int:
    """Run the watch loop until interrupted."""
    log_path = _get_log_path(log_dir)
    json_log = _JsonLogger(log_path)

    tracker = _ChangeTracker()
    observer = Observer()
    observer.schedule(_SourceChangeHandler(cfg, tracker), str(cfg.root), recursive=True)
    observer.start()

    print(f"[featlint] watching {cfg.root}")
    print(f"[featlint] debounce={debounce_seconds}s logging to: {log_path}")

    rc = 0
    try:
        rc = _full_run(cfg, json_log, [])
        while True:
            changed = tracker.take_if_quiet(time.time(), debounce_seconds)
            if not changed:
                time.sleep(interval)
                continue
            logger.debug("Changed: %s", ", ".join(changed))
            print(f"\n[featlint] {len(changed)} file(s) changed, re-running")
            rc = _full_run(cfg, json_log, changed)
    except KeyboardInterrupt:
        print("\n[featlint] stopping...")
    finally:
        observer.stop()
        observer.join()

    return rc
