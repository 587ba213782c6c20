"""JSON file helpers: tolerant reads and crash-safe writes."""

from __future__ import annotations

import json
import os
import platform
import time
from pathlib import Path
from typing import Any


def strip_jsonc_comments(text: str) -> str:
    """Remove ``//`` and ``/* */`` comments, leaving string contents intact."""
    out: list[str] = []
    i = 0
    n = len(text)
    in_string = False

    while i < n:
        ch = text[i]
        if in_string:
            out.append(ch)
            if ch == "\\" and i + 1 < n:
                out.append(text[i + 1])
                i += 2
                continue
            if ch == '"':
                in_string = False
            i += 1
            continue

        nxt = text[i + 1] if i + 1 < n else ""
        if ch == '"':
            in_string = True
            out.append(ch)
            i += 1
        elif ch == "/" and nxt == "/":
            end = text.find("\n", i + 2)
            i = n if end == -1 else end
        elif ch == "/" and nxt == "*":
            end = text.find("*/", i + 2)
            i = n if end == -1 else end + 2
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def parse_json_text(raw: str) -> Any:
    """Parse JSON, falling back to JSONC when the strict parse fails."""
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return json.loads(strip_jsonc_comments(raw))


def read_json_file(path: str | Path) -> Any:
    """Read and parse a JSON (or JSONC) file, tolerating a UTF-8 BOM.

    Raises OSError when the file cannot be read and ValueError when it is
    not UTF-8 (UnicodeDecodeError) or not valid JSON even after stripping
    comments (json.JSONDecodeError).
    """
    return parse_json_text(Path(path).read_text(encoding="utf-8-sig"))


def dump_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def _discard(tmp_path: str) -> None:
    try:
        os.unlink(tmp_path)
    except OSError:
        pass


def write_json_atomic(path: str | Path, data: Any) -> None:
    """Write ``data`` to ``path`` through a sibling temp file and a rename."""
    target = str(path)
    tmp_path = target + ".tmp"
    try:
        Path(tmp_path).write_text(dump_json(data), encoding="utf-8")
    except OSError:
        _discard(tmp_path)
        raise

    # Windows can hold the target open briefly (editors, AV scanners).
    max_retries = 3 if platform.system() == "Windows" else 1
    for attempt in range(max_retries):
        try:
            os.replace(tmp_path, target)
            return
        except OSError:
            if attempt < max_retries - 1:
                time.sleep(0.1)
            else:
                _discard(tmp_path)
                raise
