"""Cron job persistence.

Manifesto:
    The store is the authoritative copy of every job; the scheduler's cache
    is only a mirror.  Persistence is a plain data concern, so the store
    knows nothing about cron semantics: it saves, fetches, lists and
    deletes job documents and reports failures as ``Result`` values.

Tags:
    cronspine, scheduling, store, persistence, json

Doc-Types:
    api-reference, architecture-diagram


┌──────────────────────────────────────────────────────────────────────────────┐
│  CRON STORE                                                                   │
│                                                                               │
│   CronStore (Protocol)                                                        │
│   ├── save(job)      → Result[None]                                          │
│   ├── get(job_id)    → Result[CronJob | None]                                │
│   ├── list()         → Result[list[CronJob]]                                 │
│   └── delete(job_id) → Result[None]        (missing job is not an error)     │
│                                                                               │
│   LocalCronStore(directory)                                                   │
│   └── <directory>/<job_id>.json   one document per job                       │
│         write: <job_id>.json.<rand>.tmp  ──os.replace──►  <job_id>.json      │
│                                                                               │
│   InMemoryCronStore                                                           │
│   └── dict[job_id, CronJob]        copies in, copies out                     │
└──────────────────────────────────────────────────────────────────────────────┘
"""

from __future__ import annotations

import json
import os
import re
import tempfile
import threading
from pathlib import Path
from typing import Protocol, runtime_checkable

from cronspine.core.errors import ErrorContext, PersistenceError
from cronspine.core.logging import get_logger
from cronspine.core.result import Err, Ok, Result
from cronspine.core.scheduling.models import CronJob

logger = get_logger(__name__)

_SAFE_JOB_ID = re.compile(r"[A-Za-z0-9][A-Za-z0-9_.-]*")


@runtime_checkable
class CronStore(Protocol):
    """Synchronous persistence contract for cron jobs."""

    def save(self, job: CronJob) -> Result[None]:
        """Insert or replace a job."""
        ...

    def get(self, job_id: str) -> Result[CronJob | None]:
        """Fetch one job; ``Ok(None)`` when it does not exist."""
        ...

    def list(self) -> Result[list[CronJob]]:
        """Fetch every job."""
        ...

    def delete(self, job_id: str) -> Result[None]:
        """Remove a job; deleting a missing job succeeds."""
        ...


class LocalCronStore:
    """File-backed store: one JSON document per job in ``directory``.

    The directory is created on first write.  Writes go to a temporary file
    in the same directory and are moved into place with ``os.replace`` so a
    crash never leaves a half-written document behind.  ``list`` skips
    (and logs) documents it cannot read, so one stray file does not stop
    the scheduler from loading the rest; ``get`` still reports them.

    Usage:
        store = LocalCronStore(Path("~/.cronspine/jobs"))
        store.save(job)
        store.get(job.id).unwrap()
    """

    def __init__(self, directory: str | os.PathLike[str]) -> None:
        self.directory = Path(directory).expanduser()

    def save(self, job: CronJob) -> Result[None]:
        path = self._path_for(job.id)
        if path.is_err():
            return Err(path.error)
        target = path.value

        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(
                dir=self.directory, prefix=f"{job.id}.json.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(job.to_dict(), fh, indent=2)
                os.replace(tmp_name, target)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as e:
            logger.error("cron_store_write_failed", job_id=job.id, error=str(e))
            return Err(PersistenceError(
                f"Failed to write cron job {job.id}",
                code="CRON_STORE_WRITE_FAILED",
                context=ErrorContext(job_id=job.id, path=str(target)),
                cause=e,
            ))

        logger.debug("cron_store_saved", job_id=job.id)
        return Ok(None)

    def get(self, job_id: str) -> Result[CronJob | None]:
        path = self._path_for(job_id)
        if path.is_err():
            return Err(path.error)
        if not path.value.exists():
            return Ok(None)
        return self._read(path.value)

    def list(self) -> Result[list[CronJob]]:
        if not self.directory.exists():
            return Ok([])

        try:
            paths = sorted(self.directory.glob("*.json"))
        except OSError as e:
            return Err(PersistenceError(
                f"Failed to list cron jobs in {self.directory}",
                code="CRON_STORE_LIST_FAILED",
                context=ErrorContext(path=str(self.directory)),
                cause=e,
            ))

        jobs: list[CronJob] = []
        for path in paths:
            result = self._read(path)
            if result.is_err():
                logger.warning(
                    "cron_store_document_skipped", path=str(path), error=result.error.message
                )
                continue
            jobs.append(result.value)
        return Ok(jobs)

    def delete(self, job_id: str) -> Result[None]:
        path = self._path_for(job_id)
        if path.is_err():
            return Err(path.error)

        try:
            path.value.unlink(missing_ok=True)
        except OSError as e:
            logger.error("cron_store_delete_failed", job_id=job_id, error=str(e))
            return Err(PersistenceError(
                f"Failed to delete cron job {job_id}",
                code="CRON_STORE_DELETE_FAILED",
                context=ErrorContext(job_id=job_id, path=str(path.value)),
                cause=e,
            ))

        logger.debug("cron_store_deleted", job_id=job_id)
        return Ok(None)

    def _path_for(self, job_id: str) -> Result[Path]:
        if not isinstance(job_id, str) or not _SAFE_JOB_ID.fullmatch(job_id):
            return Err(PersistenceError(
                f"Invalid cron job id for file store: {job_id!r}",
                code="CRON_STORE_INVALID_ID",
                context=ErrorContext(job_id=str(job_id)),
            ))
        return Ok(self.directory / f"{job_id}.json")

    def _read(self, path: Path) -> Result[CronJob]:
        try:
            with path.open(encoding="utf-8") as fh:
                data = json.load(fh)
            return Ok(CronJob.from_dict(data))
        except (OSError, ValueError, KeyError, TypeError) as e:
            logger.error("cron_store_read_failed", path=str(path), error=str(e))
            return Err(PersistenceError(
                f"Failed to read cron job from {path.name}",
                code="CRON_STORE_READ_FAILED",
                context=ErrorContext(path=str(path)),
                cause=e,
            ))


class InMemoryCronStore:
    """Dict-backed store for tests and ephemeral schedulers."""

    def __init__(self) -> None:
        self._jobs: dict[str, CronJob] = {}
        self._lock = threading.Lock()

    def save(self, job: CronJob) -> Result[None]:
        with self._lock:
            self._jobs[job.id] = job.copy()
        return Ok(None)

    def get(self, job_id: str) -> Result[CronJob | None]:
        with self._lock:
            job = self._jobs.get(job_id)
            return Ok(job.copy() if job else None)

    def list(self) -> Result[list[CronJob]]:
        with self._lock:
            return Ok([job.copy() for job in self._jobs.values()])

    def delete(self, job_id: str) -> Result[None]:
        with self._lock:
            self._jobs.pop(job_id, None)
        return Ok(None)


__all__ = [
    "CronStore",
    "InMemoryCronStore",
    "LocalCronStore",
]
