"""
featlint - Magic comment patterns.

A magic comment marks a piece of code as one implementation of a feature
that other code must evolve together with:

    # [feature-revision] id: user-with-email-query, revision: 3
    def with_email(self):
        ...

All magic comments with the same id must carry the same revision.
The pattern is configurable; it must declare exactly two named groups,
``id`` and ``revision``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from .config import DEFAULT_MAGIC_COMMENT_REGEXP
from .errors import ConfigurationError
from .scanner import Comment, Location

__all__ = [
    "DEFAULT_MAGIC_COMMENT_REGEXP",
    "MagicComment",
    "compile_magic_comment_pattern",
    "from_ruby_syntax",
    "match_comment",
]

REQUIRED_GROUPS = ("id", "revision")

# Ruby (Onigmo) spellings carried over from RuboCop configs
_RUBY_NAMED_GROUP = re.compile(r"(?<!\\)\(\?<(?=[A-Za-z_])")
_RUBY_BACKREF = re.compile(r"(?<!\\)\\k<([A-Za-z_]\w*)>")
_RUBY_END_ANCHOR = re.compile(r"(?<!\\)\\z")


@dataclass(frozen=True)
class MagicComment:
    """A comment that matched the magic comment pattern."""
    location: Location
    feature_id: str
    revision: str


def compile_magic_comment_pattern(pattern: Union[str, re.Pattern]) -> re.Pattern:
    """
    Compile and validate a magic comment pattern.

    Raises ConfigurationError if the pattern does not compile or does not
    declare exactly the ``id`` and ``revision`` named groups.
    """
    if isinstance(pattern, re.Pattern):
        compiled = pattern
    else:
        if not isinstance(pattern, str):
            raise ConfigurationError("magic comment pattern must be a string", pattern)
        try:
            compiled = re.compile(from_ruby_syntax(pattern))
        except re.error as e:
            raise ConfigurationError(
                f"invalid magic comment pattern: {e} (named groups are written (?P<id>...) or (?<id>...))",
                pattern,
            ) from e

    groups = set(compiled.groupindex)
    missing = [g for g in REQUIRED_GROUPS if g not in groups]
    if missing:
        raise ConfigurationError(
            f"magic comment pattern lacks named group(s): {', '.join(missing)}",
            compiled.pattern,
        )
    extra = sorted(groups - set(REQUIRED_GROUPS))
    if extra:
        raise ConfigurationError(
            f"magic comment pattern declares unexpected named group(s): {', '.join(extra)}",
            compiled.pattern,
        )
    return compiled


def match_comment(comment: Comment, pattern: re.Pattern) -> Optional[MagicComment]:
    """Return a MagicComment if the whole comment text matches, else None."""
    m = pattern.fullmatch(comment.text)
    if m is None:
        return None
    feature_id = m.group("id")
    revision = m.group("revision")
    # Optional groups may not participate, or may capture nothing
    if not feature_id or not revision:
        return None
    return MagicComment(location=comment.location, feature_id=feature_id, revision=revision)


def from_ruby_syntax(pattern: str) -> str:
    """
    Rewrite Ruby-only regexp syntax into Python's.

    Handles (?<name>...) groups, \\k<name> backreferences and the \\z anchor,
    so a MagicCommentRegExp copied from a RuboCop config compiles as is.
    Lookbehinds ((?<=...), (?<!...)) are left alone.
    """
    pattern = _RUBY_NAMED_GROUP.sub("(?P<", pattern)
    pattern = _RUBY_BACKREF.sub(r"(?P=\1)", pattern)
    return _RUBY_END_ANCHOR.sub(r"\\Z", pattern)
