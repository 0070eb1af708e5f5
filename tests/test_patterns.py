"""
Tests for magic comment pattern validation and matching.
"""

import re

import pytest

from featlint.config import DEFAULT_MAGIC_COMMENT_REGEXP
from featlint.errors import ConfigurationError
from featlint.patterns import compile_magic_comment_pattern, from_ruby_syntax, match_comment
from featlint.scanner import Comment, Location


def _comment(text: str) -> Comment:
    return Comment(text=text, location=Location("a.rb", 3, 2, 3, 2 + len(text)))


@pytest.fixture
def pattern():
    return compile_magic_comment_pattern(DEFAULT_MAGIC_COMMENT_REGEXP)


class TestPatternValidation:
    """A pattern must declare exactly the id and revision groups."""

    def test_default_pattern_is_valid(self):
        compiled = compile_magic_comment_pattern(DEFAULT_MAGIC_COMMENT_REGEXP)
        assert set(compiled.groupindex) == {"id", "revision"}

    def test_precompiled_pattern_accepted(self):
        compiled = re.compile(r"#(?P<id>\w+)=(?P<revision>\w+)")
        assert compile_magic_comment_pattern(compiled) is compiled

    def test_missing_revision_group(self):
        with pytest.raises(ConfigurationError, match="revision"):
            compile_magic_comment_pattern(r"#\s*(?P<id>\S+)")

    def test_missing_id_group(self):
        with pytest.raises(ConfigurationError, match="id"):
            compile_magic_comment_pattern(r"#\s*(?P<revision>\S+)")

    def test_unnamed_groups_do_not_count(self):
        with pytest.raises(ConfigurationError):
            compile_magic_comment_pattern(r"#\s*(\S+)\s+(\S+)")

    def test_extra_named_group_rejected(self):
        with pytest.raises(ConfigurationError, match="unexpected"):
            compile_magic_comment_pattern(r"#(?P<id>\w+) (?P<revision>\w+) (?P<owner>\w+)")

    def test_invalid_regex_syntax(self):
        with pytest.raises(ConfigurationError, match="invalid"):
            compile_magic_comment_pattern(r"#(?P<id>\w+")

    def test_error_keeps_offending_value(self):
        with pytest.raises(ConfigurationError) as excinfo:
            compile_magic_comment_pattern(r"#(?P<id>\w+)")
        assert excinfo.value.value == r"#(?P<id>\w+)"


class TestMatchComment:
    """Matching extracts id and revision verbatim."""

    def test_default_format(self, pattern):
        result = match_comment(_comment("# [feature-revision] id: user-with-email-query, revision: 3"), pattern)
        assert result is not None
        assert result.feature_id == "user-with-email-query"
        assert result.revision == "3"

    def test_location_is_carried(self, pattern):
        comment = _comment("# [feature-revision] id: x, revision: 3")
        result = match_comment(comment, pattern)
        assert result.location == comment.location

    def test_revision_is_not_numeric(self, pattern):
        result = match_comment(_comment("# [feature-revision] id: x, revision: 02"), pattern)
        assert result.revision == "02"

    def test_whitespace_variants(self, pattern):
        result = match_comment(_comment("#[feature-revision]id:x,revision:v2   "), pattern)
        assert (result.feature_id, result.revision) == ("x", "v2")

    @pytest.mark.parametrize("text", [
        "# just a comment",
        "# [feature-revision] id: x",
        "# [feature-revision] revision: 3",
        "# [feature-revision] id: x, revision: 3 trailing words",
        "# see [feature-revision] id: x, revision: 3",
        "",
    ])
    def test_non_magic_comments(self, pattern, text):
        assert match_comment(_comment(text), pattern) is None

    def test_whole_text_must_match(self):
        unanchored = compile_magic_comment_pattern(r"rev (?P<id>\w+) (?P<revision>\w+)")
        assert match_comment(_comment("# rev x 1"), unanchored) is None
        assert match_comment(_comment("rev x 1"), unanchored) is not None

    def test_empty_capture_is_not_a_match(self):
        loose = compile_magic_comment_pattern(r"#(?P<id>\w*):(?P<revision>\w*)")
        assert match_comment(_comment("#:1"), loose) is None
        assert match_comment(_comment("#x:"), loose) is None
        assert match_comment(_comment("#x:1"), loose) is not None

    def test_optional_group_not_participating(self):
        optional = compile_magic_comment_pattern(r"#(?P<id>\w+)(?::(?P<revision>\w+))?")
        assert match_comment(_comment("#x"), optional) is None


class TestRubySyntax:
    """Ruby regexp spellings are rewritten before compiling."""

    def test_named_groups(self):
        assert from_ruby_syntax(r"#(?<id>\w+):(?<revision>\w+)") == r"#(?P<id>\w+):(?P<revision>\w+)"

    def test_lookbehinds_untouched(self):
        assert from_ruby_syntax(r"(?<=#)(?<!x)") == r"(?<=#)(?<!x)"

    def test_escaped_paren_untouched(self):
        assert from_ruby_syntax(r"\(?<id>") == r"\(?<id>"

    def test_backreference_and_end_anchor(self):
        assert from_ruby_syntax(r"(?<id>\w+)=\k<id>\z") == r"(?P<id>\w+)=(?P=id)\Z"

    def test_ruby_pattern_matches(self):
        compiled = compile_magic_comment_pattern(r"\A#\s*rev (?<id>\S+) (?<revision>\S+)\z")
        result = match_comment(_comment("# rev x 1"), compiled)
        assert (result.feature_id, result.revision) == ("x", "1")

    def test_error_mentions_group_syntax(self):
        with pytest.raises(ConfigurationError, match=r"\(\?P<id>"):
            compile_magic_comment_pattern(r"#(?<id>\w+")
