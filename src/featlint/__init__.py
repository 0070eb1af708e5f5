r"""
featlint - Feature revision consistency checker.

Logically coupled pieces of code are marked with magic comments:

    # [feature-revision] id: user-with-email-query, revision: 3

Every magic comment with the same id must carry the same revision across
the whole scanned tree. The first revision seen for an id is the baseline;
any comment with a different revision is reported as an error.

Usage:
    featlint [root]
    featlint --json
    featlint --pattern '^#\s*@rev\s+(?P<id>\S+)\s+(?P<revision>\S+)$'
    featlint --watch
"""

__version__ = "1.0.0"
