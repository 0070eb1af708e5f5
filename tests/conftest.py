"""
Pytest configuration and shared fixtures.
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from featlint.config import LintConfig
from featlint.registry import RevisionRegistry
from featlint.reporting import DiagnosticEmitter, Reporter
from featlint.rules import FeatureRevisionsCheck
from featlint.scanner import ProcessedSource, SourceFile


# =============================================================================
# TREE FIXTURES
# =============================================================================

@pytest.fixture
def make_tree(tmp_path):
    """Factory: write {relpath: text} under tmp_path and return the root."""
    def _make(files: dict) -> Path:
        for rel, text in files.items():
            path = tmp_path / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(text, encoding="utf-8")
        return tmp_path
    return _make


@pytest.fixture
def cfg(tmp_path):
    """Single-threaded config rooted at tmp_path."""
    return LintConfig(root=tmp_path, workers=1)


# =============================================================================
# CHECK FIXTURES
# =============================================================================

@pytest.fixture
def reporter():
    return Reporter()


@pytest.fixture
def registry():
    return RevisionRegistry()


@pytest.fixture
def check(cfg, registry, reporter):
    return FeatureRevisionsCheck(cfg.magic_comment_regexp, registry, DiagnosticEmitter(reporter))


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def ruby_source(rel: str, text: str) -> ProcessedSource:
    """Build an in-memory Ruby source."""
    return ProcessedSource(SourceFile(path=Path(rel), rel=rel, text=text, syntax="hash"))


def python_source(rel: str, text: str) -> ProcessedSource:
    """Build an in-memory Python source."""
    return ProcessedSource(SourceFile(path=Path(rel), rel=rel, text=text, syntax="python"))


def magic(feature_id: str, revision: str) -> str:
    return f"# [feature-revision] id: {feature_id}, revision: {revision}"
