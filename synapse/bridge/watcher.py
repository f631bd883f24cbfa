"""Source watcher -- which artifact to read, and what is new in it.

A session directory holds one artifact per agent run.  The watcher picks the
most recently modified one (or the newest matching a target filter) and
turns a full re-read into a delta against a unit cursor:

- session JSON (``*.json``): units are entries of ``messages``
- JSONL (``*.jsonl``): units are complete lines

The artifact is written concurrently by the agent process.  A read that
races a partial write (invalid JSON, a trailing line with no newline yet)
yields an empty delta with the cursor unchanged; the next poll retries.

File-system calls run in the thread pool via ``anyio.to_thread.run_sync``.
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from functools import partial
from pathlib import Path
from typing import Any

from anyio import to_thread

from synapse.bridge.models.enums import SourceFormat

EXTENSIONS = {
    SourceFormat.SESSION_JSON: ".json",
    SourceFormat.JSONL: ".jsonl",
}


@dataclass(frozen=True)
class Delta:
    """Units beyond the previous cursor, and the cursor that follows them."""

    units: list[Any] = field(default_factory=list)
    cursor: int = 0

    def __bool__(self) -> bool:
        return bool(self.units)


class SourceWatcher:
    """Select the current artifact in ``directory`` and read deltas from it."""

    def __init__(
        self,
        directory: str | Path,
        source_format: SourceFormat,
        *,
        target: str | None = None,
        lock_suffix: str = ".lock",
    ) -> None:
        if source_format not in EXTENSIONS:
            msg = f"No artifact convention for source format {source_format!r}"
            raise ValueError(msg)
        self.directory = Path(directory)
        self.source_format = SourceFormat(source_format)
        self.extension = EXTENSIONS[self.source_format]
        self.target = target
        self.lock_suffix = lock_suffix

    # -- Selection -------------------------------------------------------------

    async def select_current(self) -> Path | None:
        """Return the artifact to track, or ``None`` if there is none yet."""
        return await to_thread.run_sync(self.select_current_sync)

    def select_current_sync(self) -> Path | None:
        candidates = self._candidates()
        if self.target:
            candidates = [(mtime, path) for mtime, path in candidates if self.target in path.name]
        if not candidates:
            return None
        return max(candidates, key=lambda item: item[0])[1]

    def _candidates(self) -> list[tuple[float, Path]]:
        try:
            entries = list(os.scandir(self.directory))
        except (FileNotFoundError, NotADirectoryError):
            return []

        found: list[tuple[float, Path]] = []
        for entry in entries:
            name = entry.name
            if not name.endswith(self.extension) or name.endswith(self.lock_suffix):
                continue
            try:
                if not entry.is_file():
                    continue
                mtime = entry.stat().st_mtime
            except FileNotFoundError:
                # Removed between listing and stat.
                continue
            found.append((mtime, Path(entry.path)))
        return found

    # -- Reading ---------------------------------------------------------------

    async def read_delta(self, artifact: Path, cursor: int) -> Delta:
        """Return units past ``cursor``.  Never moves the cursor backwards."""
        return await to_thread.run_sync(partial(self.read_delta_sync, artifact, cursor))

    def read_delta_sync(self, artifact: Path, cursor: int) -> Delta:
        try:
            raw = artifact.read_text(encoding="utf-8", errors="replace")
        except FileNotFoundError:
            return Delta(cursor=cursor)

        units = self._split_units(raw)
        if units is None or len(units) <= cursor:
            return Delta(cursor=cursor)
        return Delta(units=units[cursor:], cursor=len(units))

    def _split_units(self, raw: str) -> list[Any] | None:
        if self.source_format == SourceFormat.SESSION_JSON:
            return _session_messages(raw)
        return _complete_lines(raw)


def _session_messages(raw: str) -> list[Any] | None:
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(data, dict):
        return None
    messages = data.get("messages")
    return messages if isinstance(messages, list) else []


def _complete_lines(raw: str) -> list[str]:
    """Split into lines, holding back a trailing line still being written."""
    lines = raw.split("\n")
    # The last element is "" when the file ends with a newline, otherwise a
    # partial line; either way it is not a complete unit yet.
    return [line.rstrip("\r") for line in lines[:-1]]


# ---------------------------------------------------------------------------
# Directory resolution
# ---------------------------------------------------------------------------


def candidate_dirs(source_format: SourceFormat, agent_id: str = "main", cwd: str | Path | None = None) -> list[Path]:
    """Conventional artifact directories for a source format, most specific first."""
    home = Path.home()
    if source_format == SourceFormat.SESSION_JSON:
        return [
            home / ".clawdbot" / "agents" / agent_id / "sessions",
            home / ".clawdbot" / "sessions",
        ]
    project = Path(cwd or Path.cwd()).resolve()
    encoded = str(project).replace("/", "-").replace("\\", "-")
    return [home / ".claude" / "projects" / encoded]


def resolve_watch_dir(
    source_format: SourceFormat,
    explicit: str | Path | None = None,
    *,
    agent_id: str = "main",
    cwd: str | Path | None = None,
) -> Path:
    """Return the directory to watch.

    An explicit directory always wins.  Otherwise the first existing
    conventional directory is used; if none exists yet the most specific one
    is returned and the watcher idles until it appears.
    """
    if explicit:
        return Path(explicit).expanduser()
    candidates = candidate_dirs(source_format, agent_id, cwd)
    for path in candidates:
        if path.is_dir():
            return path
    return candidates[0]
