"""Subprocess helpers for the git and uv invocations mono-bump makes.

All commands run against the workspace root passed in as ``cwd``; nothing
here consults the process working directory on its own.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

RULE_WIDTH = 60


def git(*args: str, cwd: Path | None = None, check: bool = True) -> str:
    """Return the stripped stdout of ``git <args>``.

    With ``check=False`` a failing command yields whatever it printed (usually
    nothing), which is how tag lookups treat a missing repository.

    Raises:
        subprocess.CalledProcessError: If ``check`` is set and git exits
            non-zero. ``stderr`` holds git's message.
    """
    proc = subprocess.run(
        ["git", *args], cwd=cwd, capture_output=True, text=True, check=check
    )
    return proc.stdout.strip()


def run(
    *args: str, cwd: Path | None = None, check: bool = True
) -> subprocess.CompletedProcess[bytes]:
    # Build and upload output goes straight to the terminal.
    return subprocess.run(args, cwd=cwd, check=check)


def step(msg: str) -> None:
    """Print ``msg`` between two horizontal rules."""
    rule = "─" * RULE_WIDTH
    print(f"\n{rule}\n{msg}\n{rule}")
