"""
Once-per-day snapshot cache for GitHub API payloads.

Every payload is stored as one JSON document under
``<root>/<YYYY-MM-DD>/<category>/<owner>/<repo>/<key>.json``. A new calendar
day (UTC) starts a fresh namespace, so entries are never expired or
overwritten within a day.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Union

from .domain import CacheWriteError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class SnapshotCache:
    """File-backed memoization of API payloads, partitioned by calendar day."""

    def __init__(
        self,
        root: Union[str, Path],
        clock: Callable[[], datetime] = utc_now,
    ):
        self.root = Path(root)
        self.clock = clock

    def path_for(self, category: str, owner: str, repo: str, key: str) -> Path:
        """Location of the cache entry for today's snapshot."""
        day = self.clock().astimezone(timezone.utc).date().isoformat()
        return self.root / day / category / owner / repo / f"{key}.json"

    async def get(
        self,
        category: str,
        owner: str,
        repo: str,
        key: str,
        fetch: Callable[[], Awaitable[Any]],
    ) -> Any:
        """
        Return today's cached payload, fetching and storing it on a miss.

        Unreadable or malformed entries count as misses. Errors raised by
        ``fetch`` propagate unchanged; failures to persist the fetched payload
        raise CacheWriteError.
        """
        path = self.path_for(category, owner, repo, key)

        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            logger.debug(f"📦 Cache hit: {path}")
            return payload
        except (OSError, ValueError):
            logger.debug(f"🌐 Cache miss: {path}")

        payload = await fetch()
        self._write(path, payload)
        return payload

    def _write(self, path: Path, payload: Any) -> None:
        try:
            content = json.dumps(payload, indent=2)
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=path.parent, prefix=f".{path.stem}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    f.write(content)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            raise CacheWriteError(f"Failed to write cache entry {path}: {e}") from e
