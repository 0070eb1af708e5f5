"""
featlint - Feature revision consistency check.

Some features (methods, constants, queries) are logically coupled: a
change to one without the other breaks the application. Marking each
implementation with a magic comment lets the check verify they move
together:

    # bad
    class User:
        # [feature-revision] id: user-with-email-query, revision: 3
        def with_email(self):
            return bool(self.email)

        # [feature-revision] id: user-with-email-query, revision: 2
        @classmethod
        def all_with_email(cls):
            return cls.objects.exclude(email=None)

    # good: both comments carry revision 3

The check is cross-file: every file scanned during one run shares the
same RevisionRegistry.
"""

from __future__ import annotations

import logging
import re
from typing import Union

from .patterns import compile_magic_comment_pattern, match_comment
from .registry import RevisionRegistry
from .reporting import DiagnosticEmitter
from .scanner import ProcessedSource

logger = logging.getLogger(__name__)


class FeatureRevisionsCheck:
    """
    Scans files for magic comments and reports unmatched revisions.

    The pattern is validated here, once; a bad pattern raises
    ConfigurationError before any file is scanned. scan_file may be called
    from several threads at once.
    """

    def __init__(
        self,
        pattern: Union[str, re.Pattern],
        registry: RevisionRegistry,
        emitter: DiagnosticEmitter,
    ) -> None:
        self.pattern = compile_magic_comment_pattern(pattern)
        self.registry = registry
        self.emitter = emitter

    def scan_file(self, source: ProcessedSource) -> int:
        """Check every magic comment in source. Returns the number of violations."""
        if not source.has_syntax_tree:
            logger.debug("Skipping %s: no syntax tree", source.path)
            return 0

        matched = 0
        violations = 0
        for comment in source.comments():
            magic = match_comment(comment, self.pattern)
            if magic is None:
                continue
            matched += 1
            if self.registry.check_and_register(magic.feature_id, magic.revision).is_conflict:
                self.emitter.report(magic.location, evidence=comment.text, symbol=magic.feature_id)
                violations += 1

        logger.debug("%s: %d magic comments, %d violations", source.path, matched, violations)
        return violations
