"""
Tests for the feature revision check (orchestrator + emitter).
"""

import threading

import pytest

from featlint.errors import ConfigurationError
from featlint.registry import RevisionRegistry
from featlint.reporting import MSG, DiagnosticEmitter, Reporter
from featlint.rules import FeatureRevisionsCheck

from conftest import magic, python_source, ruby_source


class TestSetup:
    """A bad pattern fails at construction, before scanning."""

    def test_missing_revision_group(self, registry, reporter):
        with pytest.raises(ConfigurationError):
            FeatureRevisionsCheck(r"#\s*(?P<id>\S+)", registry, DiagnosticEmitter(reporter))
        assert reporter.findings == []
        assert len(registry) == 0


class TestSingleFile:
    """Comments in one file are checked in source order."""

    def test_plain_comments_register_nothing(self, check, registry, reporter):
        src = ruby_source("a.rb", "# hello\n# [feature-revision] id: x\nx = 1 # inline\n")
        assert check.scan_file(src) == 0
        assert len(registry) == 0
        assert reporter.findings == []

    def test_second_differing_revision_reported(self, check, reporter):
        src = ruby_source("a.rb", f"{magic('F', '1')}\ndef a; end\n\n{magic('F', '2')}\ndef b; end\n")
        assert check.scan_file(src) == 1
        (finding,) = reporter.findings
        assert finding.line == 4
        assert finding.message == MSG == "Unmatched feature revision"
        assert finding.severity == "ERROR"
        assert finding.symbol == "F"

    def test_first_seen_wins(self, check, reporter):
        src = ruby_source("a.rb", f"{magic('F', '2')}\n{magic('F', '1')}\n")
        check.scan_file(src)
        (finding,) = reporter.findings
        assert finding.line == 2
        assert "revision: 1" in finding.evidence

    def test_identical_revisions_never_reported(self, check, reporter):
        src = ruby_source("a.rb", "\n".join(magic("F", "R") for _ in range(5)) + "\n")
        assert check.scan_file(src) == 0
        assert reporter.findings == []

    def test_repeated_offending_revision_reported_once(self, check, reporter):
        src = ruby_source("a.rb", f"{magic('F', '1')}\n{magic('F', '2')}\n{magic('F', '2')}\n")
        check.scan_file(src)
        assert [f.line for f in reporter.findings] == [2]

    def test_distinct_ids_are_not_compared(self, check, reporter):
        src = ruby_source("a.rb", f"{magic('F', '1')}\n{magic('G', '2')}\n")
        assert check.scan_file(src) == 0

    def test_python_file(self, check, reporter):
        src = python_source("m.py", f"{magic('F', '1')}\ndef a():\n    {magic('F', '2')}\n    pass\n")
        check.scan_file(src)
        (finding,) = reporter.findings
        assert (finding.path, finding.line, finding.col) == ("m.py", 3, 4)

    def test_unparseable_file_is_a_no_op(self, check, registry, reporter):
        src = python_source("bad.py", f"{magic('F', '1')}\n{magic('F', '2')}\ndef broken(:\n")
        assert check.scan_file(src) == 0
        assert len(registry) == 0
        assert reporter.findings == []

    def test_custom_pattern(self, registry, reporter):
        check = FeatureRevisionsCheck(
            r"#\s*@rev\s+(?P<id>\S+)\s+(?P<revision>\S+)",
            registry,
            DiagnosticEmitter(reporter),
        )
        src = ruby_source("a.rb", f"# @rev x 1\n# @rev x 2\n{magic('x', '3')}\n")
        assert check.scan_file(src) == 1
        assert registry.revisions("x") == frozenset({"1", "2"})


class TestAcrossFiles:
    """One registry is shared across every file of a run."""

    def test_order_decides_which_comment_is_flagged(self, registry, reporter, check):
        a = ruby_source("a.rb", f"{magic('x', '3')}\ndef a; end\n")
        b = ruby_source("b.rb", f"{magic('x', '4')}\n")
        check.scan_file(b)
        check.scan_file(a)
        (finding,) = reporter.findings
        assert finding.path == "a.rb"

    @pytest.mark.parametrize("attempt", range(10))
    def test_concurrent_files_exactly_one_violation(self, attempt):
        registry = RevisionRegistry()
        reporter = Reporter()
        check = FeatureRevisionsCheck(
            r"^\s*#\s*\[feature-revision\]\s*id:\s*(?P<id>\S+),\s*revision:\s*(?P<revision>\S+)\s*$",
            registry,
            DiagnosticEmitter(reporter),
        )
        sources = [ruby_source("a.rb", magic("F", "1") + "\n"), ruby_source("b.rb", magic("F", "2") + "\n")]
        barrier = threading.Barrier(2)

        def worker(src):
            barrier.wait()
            check.scan_file(src)

        threads = [threading.Thread(target=worker, args=(s,)) for s in sources]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(reporter.findings) == 1
        assert reporter.findings[0].path in {"a.rb", "b.rb"}
        assert registry.revisions("F") == frozenset({"1", "2"})


class TestRubyConstructs:
    """Magic comments around heredocs and =begin blocks."""

    def test_conflict_after_heredoc_is_reported(self, check, reporter):
        src = ruby_source("c.rb", (
            f"{magic('x', '1')}\n"
            "WARNING = <<~TEXT\n"
            "  Don't do it\n"
            "TEXT\n"
            f"{magic('x', '2')}\n"
        ))
        assert src.has_syntax_tree
        assert check.scan_file(src) == 1
        (finding,) = reporter.findings
        assert finding.line == 5

    def test_magic_text_inside_begin_block_is_ignored(self, check, registry, reporter):
        src = ruby_source("c.rb", f"{magic('x', '1')}\n=begin\n{magic('x', '2')}\n=end\n")
        assert check.scan_file(src) == 0
        assert reporter.findings == []
        assert registry.revisions("x") == frozenset({"1"})

    def test_magic_text_inside_heredoc_is_ignored(self, check, reporter):
        src = ruby_source("c.rb", f"{magic('x', '1')}\nDOC = <<-EOS\n{magic('x', '2')}\n  EOS\n")
        assert check.scan_file(src) == 0
