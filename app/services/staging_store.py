"""
CV Staging Store

Holds uploaded CV binaries between the upload call and the analyze
call. Staging is keyed by a run id so concurrent screening sessions
never see each other's files, and every run has an explicit clear().
"""

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional


@dataclass
class StagedCv:
    id: str
    filename: str
    content: bytes
    content_type: Optional[str] = None
    upload_date: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def size(self) -> int:
        return len(self.content)

    def summary(self) -> dict:
        """Reference written to streams and batch entries (no content)."""
        return {"id": self.id, "filename": self.filename, "upload_date": self.upload_date}


class CvStagingStore:
    """
    In-process staging, one ordered list of CVs per run.
    Ids are sequential within a run ("1", "2", ...).
    """

    def __init__(self):
        self._runs: Dict[str, List[StagedCv]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_run_id() -> str:
        return uuid.uuid4().hex

    def create(self, run_id: str, filename: str, content: bytes, content_type: str = None) -> StagedCv:
        with self._lock:
            cvs = self._runs.setdefault(run_id, [])
            cv = StagedCv(
                id=str(len(cvs) + 1),
                filename=filename,
                content=content,
                content_type=content_type,
            )
            cvs.append(cv)
            return cv

    def list(self, run_id: str) -> List[StagedCv]:
        with self._lock:
            return list(self._runs.get(run_id, []))

    def get(self, run_id: str, cv_id: str) -> Optional[StagedCv]:
        for cv in self.list(run_id):
            if cv.id == cv_id:
                return cv
        return None

    def clear(self, run_id: str) -> int:
        """Drop a run's CVs. Returns how many were removed."""
        with self._lock:
            return len(self._runs.pop(run_id, []))

    def runs(self) -> List[str]:
        with self._lock:
            return list(self._runs)


# Process-wide store, handed to routes through get_staging_store()
_staging_store: CvStagingStore = None


def get_staging_store() -> CvStagingStore:
    """Get or create the staging store (FastAPI dependency)."""
    global _staging_store
    if _staging_store is None:
        _staging_store = CvStagingStore()
    return _staging_store
