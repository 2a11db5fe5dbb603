"""Pipeline constants.

Provides centralized values shared across the pipeline:
- Capability allow-lists handed to oracle calls
- Default timeouts
- Patterns used to pull references out of build/run output
"""

import re


API_PREFIX = "/v1"


# =============================================================================
# Capability allow-lists
# =============================================================================

class Capabilities:
    """Side-effecting tools granted to oracle calls per stage."""

    READ_ONLY: tuple[str, ...] = ("Read", "Glob", "Grep")
    BUILD: tuple[str, ...] = ("Read", "Write", "Edit", "Glob", "Grep", "Bash")
    RUN: tuple[str, ...] = ("Read", "Write", "Edit", "Glob", "Grep", "Bash", "WebFetch", "WebSearch")
    DEPLOY: tuple[str, ...] = ("Read", "Glob", "Grep", "Bash")


# =============================================================================
# Default Timeout Values
# =============================================================================

class Timeouts:
    """Default timeout values in seconds.

    These can be overridden via Settings.
    """
    ORACLE_DEFAULT: float = 300.0
    STORE_DEFAULT: float = 15.0
    SHUTDOWN_GRACE: float = 30.0


# =============================================================================
# Output extraction
# =============================================================================

PULL_REQUEST_URL_PATTERN = re.compile(r"https://github\.com/[^\s)]+/pull/\d+")

# Lines such as "OUTPUT: /tmp/report.md" in run-brief output
OUTPUT_PATH_PATTERN = re.compile(r"^\s*OUTPUT:\s*(\S+)\s*$", re.MULTILINE)

# Project instruction files prepended to prompts when present in the project tree
PROJECT_INSTRUCTION_FILES: tuple[str, ...] = ("CLAUDE.md", "AGENTS.md")
PROJECT_INSTRUCTION_MAX_CHARS = 8000
