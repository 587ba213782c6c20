"""Locate the ``opencode`` CLI and read its version."""

from __future__ import annotations

import logging
import platform
import re
import shutil
import subprocess
from typing import Optional

logger = logging.getLogger(__name__)

VERSION_TIMEOUT_S = 5
_VERSION_TOKEN = re.compile(r"^\d[\d.]*\.[\d.]*$")
_VERSION_RUN = re.compile(r"\d[\d.]*")


def _is_version(token: str) -> bool:
    return bool(_VERSION_TOKEN.match(token))


def extract_version(raw: str) -> str:
    """Pull a dotted version out of ``--version`` output.

    Handles "opencode/1.2.3", "codex-cli 0.86.0" and "v2.0.1"; returns
    "unknown" when nothing version-like is present.
    """
    text = str(raw or "").strip()
    for part in text.split():
        if "/" in part:
            tail = part.split("/", 1)[1]
            if _is_version(tail):
                return tail
        if _is_version(part):
            return part

    match = _VERSION_RUN.search(text)
    if match and "." in match.group(0):
        return match.group(0)
    return "unknown"


def resolve_opencode_path() -> Optional[str]:
    path = shutil.which("opencode")
    if path:
        return path
    if platform.system() == "Windows":
        for name in ("opencode.cmd", "opencode.exe"):
            path = shutil.which(name)
            if path:
                return path
    return None


def _version_command(executable: str) -> list[str]:
    if platform.system() == "Windows" and executable.lower().endswith((".cmd", ".bat")):
        return ["cmd.exe", "/C", executable, "--version"]
    return [executable, "--version"]


def check_opencode_installed() -> tuple[bool, Optional[str]]:
    """Return ``(installed, version)``; installed means ``--version`` succeeded."""
    executable = resolve_opencode_path()
    if not executable:
        logger.debug("opencode executable not found on PATH")
        return False, None

    try:
        proc = subprocess.run(
            _version_command(executable),
            capture_output=True,
            text=True,
            timeout=VERSION_TIMEOUT_S,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.debug("Failed to run %s --version: %s", executable, exc)
        return False, None

    if proc.returncode != 0:
        logger.debug("%s --version exited with %s", executable, proc.returncode)
        return False, None

    # Some builds print the version on stderr.
    raw = proc.stdout if proc.stdout.strip() else proc.stderr
    return True, extract_version(raw)
