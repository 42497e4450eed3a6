"""pr-reviewer - file-by-file pull request review over MCP.

This package walks a Bitbucket pull request one changed file at a time,
persisting the review cursor so a review survives restarts and is served in a
stable order exactly once per file.
"""

__version__ = "0.1.0"
