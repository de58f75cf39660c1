"""
On-disk cache of fix results, keyed by a normalized failure signature.

One JSON file per entry under <project_root>/<cache_dir_name>/<sha256>.json:

    {"error": {"message", "category", "file", "line"},
     "context": <first 500 chars>, "result": <FixResult dict>, "time": <epoch>}

Line and column numbers inside the message are normalized, so the same
failure reported at a different position maps to the same entry.
Entries older than max_age_seconds are misses and are deleted on read.
"""

import hashlib
import json
import logging
import os
import re
import time
from pathlib import Path
from typing import Any, Callable

from agent.models import FailureSignature, FixResult

logger = logging.getLogger(__name__)

_CONTEXT_CHARS = 500
_IGNORE_MARKER = "*\n!.gitignore\n"


def normalize_message(message: str) -> str:
    message = re.sub(r"line \d+", "line X", message)
    return re.sub(r"column \d+", "column Y", message)


def cache_key(signature: FailureSignature, context: str) -> str:
    key = "|".join(
        [
            normalize_message(signature.message),
            signature.category.value,
            str(signature.file),
            str(signature.line),
            context[:_CONTEXT_CHARS],
        ]
    )
    return hashlib.sha256(key.encode("utf-8")).hexdigest()


class ResponseCache:
    def __init__(
        self,
        project_root: str | Path,
        enabled: bool = True,
        max_age_seconds: float = 24 * 60 * 60,
        cache_dir_name: str = ".migration-fix-cache",
        clock: Callable[[], float] = time.time,
        logger: logging.Logger | None = None,
    ) -> None:
        self.cache_dir = Path(project_root) / cache_dir_name
        self.enabled = enabled
        self.max_age_seconds = max_age_seconds
        self._clock = clock
        self._log = logger or logging.getLogger(__name__)

    def _entry_path(self, signature: FailureSignature, context: str) -> Path:
        return self.cache_dir / f"{cache_key(signature, context)}.json"

    def _ensure_dir(self) -> None:
        if self.cache_dir.is_dir():
            return
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        (self.cache_dir / ".gitignore").write_text(_IGNORE_MARKER, encoding="utf-8")

    def get(self, signature: FailureSignature, context: str) -> FixResult | None:
        if not self.enabled:
            return None

        path = self._entry_path(signature, context)
        if not path.is_file():
            return None

        try:
            entry = json.loads(path.read_text(encoding="utf-8"))
            stored_at = float(entry["time"])
            result = FixResult.from_dict(entry["result"])
        except (OSError, ValueError, KeyError, TypeError) as exc:
            self._log.warning("Discarding unreadable cache entry %s: %s", path.name, exc)
            path.unlink(missing_ok=True)
            return None

        if self._clock() - stored_at > self.max_age_seconds:
            self._log.debug("Cache entry %s expired", path.name)
            path.unlink(missing_ok=True)
            return None

        self._log.info("Cache hit for error: %s", signature.message)
        return result

    def set(self, signature: FailureSignature, context: str, result: FixResult) -> None:
        if not self.enabled:
            return

        entry = {
            "error": {
                "message": signature.message,
                "category": signature.category.value,
                "file": signature.file,
                "line": signature.line,
            },
            "context": context[:_CONTEXT_CHARS],
            "result": result.to_dict(),
            "time": self._clock(),
        }
        path = self._entry_path(signature, context)
        tmp_path = path.with_suffix(f".{os.getpid()}.tmp")
        try:
            self._ensure_dir()
            tmp_path.write_text(json.dumps(entry, indent=2), encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            self._log.warning("Could not write cache entry %s: %s", path.name, exc)
            tmp_path.unlink(missing_ok=True)
            return
        self._log.info("Cached result for error: %s", signature.message)

    def clear(self) -> None:
        if not self.cache_dir.is_dir():
            return
        for path in self.cache_dir.glob("*.json"):
            path.unlink(missing_ok=True)
        self._log.info("Cleared response cache at %s", self.cache_dir)

    def stats(self) -> dict[str, Any]:
        """Total bytes, entry count, and oldest/newest entry time (epoch seconds)."""
        if not self.cache_dir.is_dir():
            return {"size": 0, "entries": 0, "oldest": None, "newest": None}

        size = 0
        times: list[float] = []
        files = list(self.cache_dir.glob("*.json"))
        for path in files:
            size += path.stat().st_size
            try:
                times.append(float(json.loads(path.read_text(encoding="utf-8"))["time"]))
            except (OSError, ValueError, KeyError, TypeError):
                times.append(path.stat().st_mtime)

        return {
            "size": size,
            "entries": len(files),
            "oldest": min(times) if times else None,
            "newest": max(times) if times else None,
        }
