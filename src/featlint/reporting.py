"""
featlint - Reporting and output formatting.

Handles:
- Finding dataclass
- Diagnostic emitter for unmatched feature revisions
- Human-readable output
- JSON output
"""

from __future__ import annotations

import json
import threading
from dataclasses import asdict, dataclass
from typing import List, Optional

from .scanner import Location

RULE_ID = "FEATURE_REVISION"
MSG = "Unmatched feature revision"
SEVERITY = "ERROR"


@dataclass
class Finding:
    """A single lint finding."""
    rule_id: str
    severity: str
    path: str
    line: int
    col: int
    message: str
    end_line: Optional[int] = None
    end_col: Optional[int] = None
    evidence: str = ""
    symbol: Optional[str] = None

    def __str__(self) -> str:
        loc = f"{self.path}:{self.line}:{self.col}"
        sym = f" [{self.symbol}]" if self.symbol else ""
        return f"{self.severity} {self.rule_id} {loc}{sym} — {self.message}"


class Reporter:
    """Collects and formats findings. Safe to add to from several threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.findings: List[Finding] = []
        self.files_scanned = 0

    def add(self, finding: Finding) -> None:
        """Add a finding."""
        with self._lock:
            self.findings.append(finding)

    @property
    def errors(self) -> List[Finding]:
        return [f for f in self.findings if f.severity == "ERROR"]

    def sorted_findings(self) -> List[Finding]:
        """Findings by path/line/col."""
        return sorted(self.findings, key=lambda f: (f.path, f.line, f.col, f.rule_id))

    def render_human(self) -> str:
        """Render findings as human-readable text."""
        if not self.findings:
            return "featlint: OK — no findings"

        lines = [
            f"Errors: {len(self.errors)}",
            "",
        ]
        for f in self.sorted_findings():
            lines.append(str(f))
            if f.evidence:
                lines.append(f"    {f.evidence}")
        return "\n".join(lines)

    def render_json(self) -> str:
        """Render findings as JSON."""
        return json.dumps(
            [asdict(f) for f in self.sorted_findings()],
            indent=2,
            default=str,
        )


class DiagnosticEmitter:
    """Turns violations into findings on a Reporter."""

    def __init__(self, reporter: Reporter) -> None:
        self.reporter = reporter

    def report(self, location: Location, evidence: str = "", symbol: Optional[str] = None) -> Finding:
        finding = Finding(
            rule_id=RULE_ID,
            severity=SEVERITY,
            path=location.path,
            line=location.line,
            col=location.col,
            message=MSG,
            end_line=location.end_line,
            end_col=location.end_col,
            evidence=evidence.strip()[:240],
            symbol=symbol,
        )
        self.reporter.add(finding)
        return finding
