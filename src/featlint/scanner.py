"""
featlint - File scanning and comment extraction.

Handles:
- Directory walking with exclusions
- Source file loading
- Comment streams for Python (tokenize) and hash-comment languages (Ruby)

A file without a syntax tree (Python that ast.parse rejects, or a Ruby
file with an unterminated literal) yields no comments at all.
"""

from __future__ import annotations

import ast
import logging
import re
import tokenize
from dataclasses import dataclass
from io import StringIO
from pathlib import Path
from typing import Iterator, List, Optional, Tuple

from .config import LintConfig, should_exclude_path

logger = logging.getLogger(__name__)

PYTHON = "python"
HASH = "hash"


@dataclass(frozen=True)
class Location:
    """Position of a comment. Lines are 1-based, columns 0-based."""
    path: str
    line: int
    col: int
    end_line: int
    end_col: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}:{self.col}"


@dataclass(frozen=True)
class Comment:
    """A single comment token: raw text (including the '#') and its location."""
    text: str
    location: Location


@dataclass(frozen=True)
class SourceFile:
    """A loaded source file with content."""
    path: Path
    rel: str
    text: str
    syntax: str

    @property
    def lines(self) -> List[str]:
        return self.text.splitlines()


def comment_syntax(cfg: LintConfig, path: Path) -> Optional[str]:
    """Which comment lexer applies to path, or None if the file is not scanned."""
    if path.suffix in cfg.python_exts:
        return PYTHON
    if path.suffix in cfg.hash_comment_exts:
        return HASH
    return None


def relpath_str(root: Path, p: Path) -> str:
    """Get relative path as posix string."""
    try:
        return p.relative_to(root).as_posix()
    except ValueError:
        return p.as_posix()


def iter_files(cfg: LintConfig) -> Iterator[Path]:
    """Iterate over all scannable files under root (or the explicit list), sorted."""
    if cfg.explicit_files is not None:
        for path in cfg.explicit_files:
            if path.is_file() and comment_syntax(cfg, path) is not None:
                yield path
        return

    for path in sorted(cfg.root.rglob("*")):
        if not path.is_file():
            continue
        if should_exclude_path(cfg, path):
            continue
        if comment_syntax(cfg, path) is not None:
            yield path


def load_source(cfg: LintConfig, path: Path) -> SourceFile:
    """Load a single source file. Raises OSError if it cannot be read."""
    syntax = comment_syntax(cfg, path)
    if syntax is None:
        raise ValueError(f"Not a scannable file: {path}")
    text = path.read_text(encoding="utf-8", errors="replace")
    return SourceFile(path=path, rel=relpath_str(cfg.root, path), text=text, syntax=syntax)


def load_sources(cfg: LintConfig) -> List[SourceFile]:
    """Load all scannable files; unreadable ones are logged and skipped."""
    sources: List[SourceFile] = []
    for path in iter_files(cfg):
        try:
            sources.append(load_source(cfg, path))
        except OSError as e:
            logger.warning("Skipping unreadable file %s: %s", path, e)
    logger.debug("Loaded %d source files under %s", len(sources), cfg.root)
    return sources


# =============================================================================
# Hash comment lexer
# =============================================================================

class LexerError(Exception):
    """Error during lexical analysis."""
    def __init__(self, message: str, line: int, column: int):
        self.line = line
        self.column = column
        super().__init__(f"Lexer error at line {line}, column {column}: {message}")


class HashCommentLexer:
    """
    Extracts '#' comments from Ruby sources.

    Skips everything that can hide a '#' or a quote without being code:
    quoted strings (with #{...} interpolation), heredoc bodies, %-literals
    (%w(...), %q{...}, %(...)), regex literals, ?x character literals and
    $' / $" globals. An =begin/=end block is yielded as one comment whose
    text spans the whole block. Nothing after __END__ is scanned.

    Regex literals are only recognised where an operand is expected
    (after an operator, an opening bracket, a comma or at line start).

    Usage:
        lexer = HashCommentLexer(source_text, filename="app/models/user.rb")
        comments = list(lexer.comments())
    """

    QUOTES = ("'", '"', "`")
    BRACKETS = {"(": ")", "[": "]", "{": "}", "<": ">"}
    PERCENT_TYPES = frozenset("qQwWiIrsx")
    PERCENT_RAW_TYPES = frozenset("qwis")
    REGEX_PRECEDERS = frozenset("(,=!~|&{[;:?+-*<>%^")

    _HEREDOC_RX = re.compile(r"<<([~-]?)(?:(['\"`])([^'\"`\n]+)\2|([A-Za-z_]\w*))")

    def __init__(self, source: str, filename: str = "<unknown>"):
        self.source = source
        self.filename = filename
        self.pos = 0
        self.line = 1
        self.column = 0
        self.length = len(source)
        self._pending_heredocs: List[Tuple[str, bool, int, int]] = []

    @staticmethod
    def _is_ident_char(ch: Optional[str]) -> bool:
        return ch is not None and (ch.isalnum() or ch == "_")

    def _current(self) -> Optional[str]:
        if self.pos >= self.length:
            return None
        return self.source[self.pos]

    def _peek(self, offset: int = 1) -> Optional[str]:
        pos = self.pos + offset
        if pos >= self.length:
            return None
        return self.source[pos]

    def _prev_raw(self) -> Optional[str]:
        """Character just before the current one on this line."""
        if self.column == 0:
            return None
        return self.source[self.pos - 1]

    def _prev_significant(self) -> Optional[str]:
        """Last non-blank character before the current one on this line."""
        pos = self.pos - 1
        while pos >= 0 and self.source[pos] in " \t":
            pos -= 1
        if pos < 0 or self.source[pos] == "\n":
            return None
        return self.source[pos]

    def _advance(self, count: int = 1) -> Optional[str]:
        ch = None
        for _ in range(count):
            ch = self._current()
            if ch is None:
                break
            self.pos += 1
            if ch == "\n":
                self.line += 1
                self.column = 0
            else:
                self.column += 1
        return ch

    def _rest_of_line_raw(self) -> str:
        end = self.source.find("\n", self.pos)
        if end == -1:
            end = self.length
        return self.source[self.pos:end]

    def _rest_of_line(self) -> str:
        return self._rest_of_line_raw().rstrip("\r")

    def _at_line_keyword(self, keyword: str) -> bool:
        """Whether the current line starts with keyword followed by a blank or EOL."""
        if self.column != 0 or not self.source.startswith(keyword, self.pos):
            return False
        after = self._peek(len(keyword))
        return after is None or after in " \t\r\n"

    # -------------------------------------------------------------------------
    # Literals
    # -------------------------------------------------------------------------

    def _skip_interpolation(self) -> None:
        """Skip #{...} code inside a literal, with the cursor on '#'."""
        start_line = self.line
        start_col = self.column
        self._advance(2)
        depth = 1
        while True:
            ch = self._current()
            if ch is None:
                raise LexerError("Unterminated interpolation", start_line, start_col)
            if ch in self.QUOTES:
                self._skip_delimited(ch, ch, interpolate=ch != "'")
            elif ch == "{":
                depth += 1
                self._advance()
            elif ch == "}":
                depth -= 1
                self._advance()
                if depth == 0:
                    return
            else:
                self._advance()

    def _skip_delimited(self, opener: str, closer: str, interpolate: bool) -> None:
        """
        Skip a literal from its opening delimiter (under the cursor) to the
        matching closer. Bracket delimiters nest; backslash escapes anything.
        """
        start_line = self.line
        start_col = self.column
        self._advance()
        depth = 1
        while True:
            ch = self._current()
            if ch is None:
                raise LexerError("Unterminated literal", start_line, start_col)
            if ch == "\\":
                self._advance(2)
                continue
            if interpolate and ch == "#" and self._peek() == "{":
                self._skip_interpolation()
                continue
            self._advance()
            if ch == closer:
                depth -= 1
                if depth == 0:
                    return
            elif ch == opener and opener != closer:
                depth += 1

    def _try_percent_literal(self) -> bool:
        """Skip a %-literal at the cursor. Returns False for the modulo operator."""
        if self._is_ident_char(self._prev_raw()) or self._prev_raw() in (")", "]", "}"):
            return False
        kind = self._peek(1)
        if kind in self.PERCENT_TYPES:
            delim = self._peek(2)
            if delim is None or delim.isalnum() or delim.isspace():
                return False
            self._advance(2)
            interpolate = kind not in self.PERCENT_RAW_TYPES
        elif kind is not None and (kind in self.BRACKETS or kind in "|!/^"):
            delim = kind
            self._advance()
            interpolate = True
        else:
            return False
        self._skip_delimited(delim, self.BRACKETS.get(delim, delim), interpolate)
        return True

    def _try_char_literal(self) -> bool:
        """Skip a ?x character literal. Returns False for '?' in names and ternaries."""
        prev = self._prev_raw()
        if self._is_ident_char(prev) or prev in ("?", "!"):
            return False
        nxt = self._peek(1)
        if nxt is None or nxt.isspace():
            return False
        if nxt == "\\":
            self._advance(3)
            return True
        if self._is_ident_char(self._peek(2)):
            return False
        self._advance(2)
        return True

    def _try_regex(self) -> bool:
        """Skip a /regex/ where an operand is expected."""
        prev = self._prev_significant()
        if prev is not None and prev not in self.REGEX_PRECEDERS:
            return False
        nxt = self._peek(1)
        if nxt is None or nxt in " \t\r\n=":
            return False
        start_line = self.line
        start_col = self.column
        self._advance()
        in_class = False
        while True:
            ch = self._current()
            if ch is None:
                raise LexerError("Unterminated regex", start_line, start_col)
            if ch == "\\":
                self._advance(2)
                continue
            if ch == "#" and self._peek() == "{":
                self._skip_interpolation()
                continue
            self._advance()
            if ch == "[":
                in_class = True
            elif ch == "]":
                in_class = False
            elif ch == "/" and not in_class:
                break
        while self._current() is not None and self._current().isalpha():
            self._advance()
        return True

    def _try_heredoc(self) -> bool:
        """Register a heredoc started at the cursor; its body is skipped at end of line."""
        m = self._HEREDOC_RX.match(self.source, self.pos)
        if m is None:
            return False
        flavour, quote = m.group(1), m.group(2)
        # a<<b is an append, not a heredoc
        if not flavour and not quote and self._is_ident_char(self._prev_raw()):
            return False
        terminator = m.group(3) if quote else m.group(4)
        self._pending_heredocs.append((terminator, bool(flavour), self.line, self.column))
        self._advance(m.end() - m.start())
        return True

    def _skip_heredoc_bodies(self) -> None:
        """Skip the bodies of heredocs opened on the line just finished."""
        for terminator, indented, start_line, start_col in self._pending_heredocs:
            while True:
                if self._current() is None:
                    raise LexerError(f"Unterminated heredoc {terminator}", start_line, start_col)
                line = self._rest_of_line()
                self._advance(len(self._rest_of_line_raw()))
                self._advance()  # newline
                if (line.strip() if indented else line) == terminator:
                    break
        self._pending_heredocs = []

    # -------------------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------------------

    def _read_comment(self) -> Comment:
        """Read a comment from # to end of line."""
        start_line = self.line
        start_col = self.column
        text = self._rest_of_line()
        self._advance(len(self._rest_of_line_raw()))
        return Comment(
            text=text,
            location=Location(
                path=self.filename,
                line=start_line,
                col=start_col,
                end_line=start_line,
                end_col=start_col + len(text),
            ),
        )

    def _read_block_comment(self) -> Comment:
        """Read an =begin ... =end block, including the =end line."""
        start_line = self.line
        lines = []
        while True:
            if self._current() is None:
                raise LexerError("Unterminated =begin block", start_line, 0)
            is_end = bool(lines) and self._at_line_keyword("=end")
            lines.append(self._rest_of_line())
            self._advance(len(self._rest_of_line_raw()))
            if is_end:
                break
            self._advance()  # newline
        return Comment(
            text="\n".join(lines),
            location=Location(
                path=self.filename,
                line=start_line,
                col=0,
                end_line=self.line,
                end_col=len(lines[-1]),
            ),
        )

    def comments(self) -> Iterator[Comment]:
        """Yield comments in source order. Raises LexerError on malformed input."""
        while True:
            ch = self._current()
            if ch is None:
                if self._pending_heredocs:
                    terminator, _, line, col = self._pending_heredocs[0]
                    raise LexerError(f"Unterminated heredoc {terminator}", line, col)
                return
            if self.column == 0:
                if self._at_line_keyword("__END__"):
                    return
                if self._at_line_keyword("=begin"):
                    yield self._read_block_comment()
                    continue

            if ch == "\n":
                self._advance()
                if self._pending_heredocs:
                    self._skip_heredoc_bodies()
            elif ch == "#":
                yield self._read_comment()
            elif ch in self.QUOTES:
                self._skip_delimited(ch, ch, interpolate=ch != "'")
            elif ch == "$" and self._peek() in self.QUOTES:
                self._advance(2)
            elif ch == "%" and self._try_percent_literal():
                continue
            elif ch == "?" and self._try_char_literal():
                continue
            elif ch == "/" and self._try_regex():
                continue
            elif ch == "<" and self._peek() == "<" and self._try_heredoc():
                continue
            else:
                self._advance()


# =============================================================================
# Processed sources
# =============================================================================

class ProcessedSource:
    """A source file prepared for comment scanning."""

    def __init__(self, src: SourceFile) -> None:
        self.src = src
        self._hash_comments: Optional[List[Comment]] = None
        self._has_tree: Optional[bool] = None

    @property
    def path(self) -> str:
        return self.src.rel

    @property
    def has_syntax_tree(self) -> bool:
        """Whether the file parses. Computed once."""
        if self._has_tree is None:
            self._has_tree = self._parse()
        return self._has_tree

    def _parse(self) -> bool:
        if self.src.syntax == PYTHON:
            try:
                ast.parse(self.src.text, filename=str(self.src.path))
            except (SyntaxError, ValueError) as e:
                logger.debug("No syntax tree for %s: %s", self.src.rel, e)
                return False
            return True

        lexer = HashCommentLexer(self.src.text, filename=self.src.rel)
        try:
            self._hash_comments = list(lexer.comments())
        except LexerError as e:
            logger.debug("No syntax tree for %s: %s", self.src.rel, e)
            return False
        return True

    def comments(self) -> Iterator[Comment]:
        """Lazy stream of comments in source order; empty without a syntax tree."""
        if not self.has_syntax_tree:
            return
        if self.src.syntax == PYTHON:
            yield from _python_comments(self.src.text, self.src.rel)
        else:
            yield from self._hash_comments or ()


def _python_comments(text: str, rel: str) -> Iterator[Comment]:
    """Use Python's tokenize module to extract COMMENT tokens."""
    readline = StringIO(text).readline
    for tok in tokenize.generate_tokens(readline):
        if tok.type == tokenize.COMMENT:
            yield Comment(
                text=tok.string,
                location=Location(
                    path=rel,
                    line=tok.start[0],
                    col=tok.start[1],
                    end_line=tok.end[0],
                    end_col=tok.end[1],
                ),
            )
