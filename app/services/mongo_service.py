"""
MongoDB Service - CRUD operations for document collections.

Collections in this database:
1. batches        - Screening runs: per-resume results + lifecycle flags
2. applicants     - Portal and bulk applicants per job
3. parsed_resumes - LLM-structured portal resumes (versioned per user)

Writes are single-document; there is no cross-record transaction.
A crash mid-run leaves a batch in `processing` with a partial list.
"""

import logging
from datetime import datetime, timezone
from typing import Optional, List

from bson import ObjectId
from bson.errors import InvalidId
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError

from app.core.errors import DuplicateApplicant, NotFound, ResultLocked
from app.db.mongodb import get_collection, COLLECTIONS

logger = logging.getLogger(__name__)


# ============================================================
# HELPER: Convert ObjectId to string for JSON serialization
# ============================================================

def serialize_doc(doc: dict) -> dict:
    """Convert MongoDB document to JSON-serializable dict."""
    if doc is None:
        return None
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


def serialize_docs(docs: list) -> list:
    """Convert list of MongoDB documents to JSON-serializable list."""
    return [serialize_doc(doc) for doc in docs]


def to_object_id(value: str) -> Optional[ObjectId]:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ============================================================
# BATCHES COLLECTION
# ============================================================

BATCH_STATUSES = ("idle", "uploaded", "processing", "completed", "failed")


def batch_status_fields(status: str) -> dict:
    """`status` plus the matching boolean flags."""
    return {
        "status": status,
        "is_idle": status == "idle",
        "is_uploaded": status != "idle",
        "is_processing": status == "processing",
        "is_completed": status == "completed",
        "is_failed": status == "failed",
    }


def format_batch_id(batch_number: int) -> str:
    return f"BATCH{batch_number:04d}"


class BatchService:
    """
    Handles batch storage.
    A batch is owned by a job posting and never hard-deleted.
    Batch ids are unique per job, so every query is keyed by (job_id, batch_id).
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["batches"])

    @staticmethod
    def _key(job_id, batch_id: str, include_deleted: bool = False) -> dict:
        query = {"job_id": job_id, "batch_id": batch_id}
        if not include_deleted:
            query["is_deleted"] = {"$ne": True}
        return query

    def get(self, job_id, batch_id: str, include_deleted: bool = False) -> Optional[dict]:
        return serialize_doc(self.collection.find_one(self._key(job_id, batch_id, include_deleted)))

    def list_by_job(self, job_id) -> List[dict]:
        cursor = self.collection.find(
            {"job_id": job_id, "is_deleted": {"$ne": True}}
        ).sort("batch_number", 1)
        return serialize_docs(list(cursor))

    def next_batch_number(self, job_id) -> int:
        return self.collection.count_documents({"job_id": job_id}) + 1

    def start_run(self, batch_id: Optional[str], job_id, name: str) -> dict:
        """
        Create or reset the batch for a new run and mark it processing.
        Called lazily, right before the first CV of the run is scored.
        Only a batch of this job is ever reset.
        """
        now = utcnow()
        existing = (
            self.collection.find_one(self._key(job_id, batch_id, include_deleted=True))
            if batch_id else None
        )

        if existing:
            self.collection.update_one(
                {"_id": existing["_id"]},
                {
                    "$set": {
                        "name": name,
                        "resumes": [],
                        "error": None,
                        "is_deleted": False,
                        "updated_at": now,
                        **batch_status_fields("processing"),
                    }
                },
            )
        else:
            batch_number = self.next_batch_number(job_id)
            if not batch_id:
                # Skip numbers a caller already took as an explicit id
                while self.collection.find_one({"job_id": job_id, "batch_id": format_batch_id(batch_number)}):
                    batch_number += 1
                batch_id = format_batch_id(batch_number)
            doc = {
                "batch_id": batch_id,
                "job_id": job_id,
                "batch_number": batch_number,
                "name": name,
                "resumes": [],
                "error": None,
                "is_deleted": False,
                "deleted_at": None,
                "deleted_by": None,
                "created_at": now,
                "updated_at": now,
                **batch_status_fields("processing"),
            }
            self.collection.insert_one(doc)
            logger.info("Created batch %s (#%s) for job %s", batch_id, batch_number, job_id)

        return self.get(job_id, batch_id, include_deleted=True)

    def append_resume(self, job_id, batch_id: str, record: dict) -> None:
        """Append a result, replacing any earlier entry for the same CV."""
        key = self._key(job_id, batch_id, include_deleted=True)
        doc = self.collection.find_one(key, {"resumes": 1})
        if doc is None:
            raise NotFound(f"Batch {batch_id} not found for job {job_id}")

        cv_id = record.get("cv", {}).get("id")
        resumes = [r for r in doc.get("resumes", []) if r.get("cv", {}).get("id") != cv_id]
        resumes.append(record)
        self.collection.update_one(
            {"_id": doc["_id"]},
            {"$set": {"resumes": resumes, "updated_at": utcnow()}},
        )

    def set_status(self, job_id, batch_id: str, status: str, error: str = None) -> None:
        fields = batch_status_fields(status)
        fields["updated_at"] = utcnow()
        if error is not None:
            fields["error"] = error
        self.collection.update_one(self._key(job_id, batch_id, include_deleted=True), {"$set": fields})

    def update_resume_analysis(self, job_id, batch_id: str, cv_id: str, analysis: dict) -> dict:
        """Patch the analysis of one entry. Locked entries are immutable."""
        doc = self.collection.find_one(self._key(job_id, batch_id))
        if doc is None:
            raise NotFound(f"Batch {batch_id} not found")

        resumes = doc.get("resumes", [])
        for resume in resumes:
            if str(resume.get("cv", {}).get("id")) == str(cv_id):
                if resume.get("analysis", {}).get("locked"):
                    raise ResultLocked(f"Resume {cv_id} is locked")
                resume["analysis"] = {**resume.get("analysis", {}), **analysis}
                self.collection.update_one(
                    {"_id": doc["_id"]},
                    {"$set": {"resumes": resumes, "updated_at": utcnow()}},
                )
                return resume
        raise NotFound(f"Resume {cv_id} not found in batch {batch_id}")

    def clear(self, job_id, batch_id: str) -> bool:
        result = self.collection.update_one(
            self._key(job_id, batch_id),
            {"$set": {"resumes": [], "error": None, "updated_at": utcnow(),
                      **batch_status_fields("idle")}},
        )
        return result.matched_count > 0

    def soft_delete(self, job_id, batch_id: str, deleted_by=None) -> bool:
        result = self.collection.update_one(
            self._key(job_id, batch_id),
            {"$set": {"is_deleted": True, "deleted_at": utcnow(), "deleted_by": deleted_by}},
        )
        return result.modified_count > 0


# ============================================================
# APPLICANTS COLLECTION
# ============================================================

APPLICANT_STATUSES = ("Applied", "Reviewed", "Shortlisted", "Interviewed", "Hired", "Rejected")
SOURCE_PORTAL = "Portal"
SOURCE_BULK = "Bulk"


def status_flag(status: str) -> str:
    return f"is_{status.lower()}"


class ApplicantService:
    """
    Handles applicant storage for both sources.
    Identity keys: (job_id, user_id) for portal, (job_id, email) for bulk.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["applicants"])

    def find_by_email(self, job_id, email: str) -> Optional[dict]:
        """Live applicant for this job holding this email, any source."""
        if not email:
            return None
        doc = self.collection.find_one(
            {"job_id": job_id, "email": email.strip().lower(), "is_deleted": {"$ne": True}}
        )
        return serialize_doc(doc)

    def find_portal(self, job_id, user_id) -> Optional[dict]:
        doc = self.collection.find_one(
            {"job_id": job_id, "user_id": user_id, "source": SOURCE_PORTAL,
             "is_deleted": {"$ne": True}}
        )
        return serialize_doc(doc)

    def create(self, job_id, source: str, user_id, email: str, **fields) -> dict:
        """
        Insert a new applicant in status Applied.

        Raises:
            DuplicateApplicant: a unique index rejected the insert
        """
        now = utcnow()
        doc = {
            "job_id": job_id,
            "source": source,
            "user_id": user_id,
            "email": (email or "").strip().lower(),
            "resume_id": None,
            "resume_url": None,
            "batch_id": None,
            "extracted_data": None,
            "score": 0,
            "score_breakdown": None,
            "gpa": None,
            "status": "Applied",
            "status_history": {"Applied": now},
            "applied_at": now,
            "updated_at": now,
            "is_deleted": False,
            "deleted_at": None,
            "deleted_by": None,
        }
        for status in APPLICANT_STATUSES:
            doc[status_flag(status)] = status == "Applied"
        doc.update(fields)

        try:
            result = self.collection.insert_one(doc)
        except DuplicateKeyError as e:
            raise DuplicateApplicant(
                "This candidate is already in your pipeline for this job."
            ) from e
        doc["_id"] = result.inserted_id
        return serialize_doc(doc)

    def get(self, applicant_id: str) -> Optional[dict]:
        oid = to_object_id(applicant_id)
        if oid is None:
            return None
        return serialize_doc(self.collection.find_one({"_id": oid, "is_deleted": {"$ne": True}}))

    def list_by_job(self, job_id, source: str = None) -> List[dict]:
        query = {"job_id": job_id, "is_deleted": {"$ne": True}}
        if source:
            query["source"] = source
        cursor = self.collection.find(query).sort("applied_at", -1)
        return serialize_docs(list(cursor))

    def list_unscored_portal(self, job_id) -> List[dict]:
        cursor = self.collection.find({
            "job_id": job_id,
            "source": SOURCE_PORTAL,
            "is_deleted": {"$ne": True},
            "$or": [{"score": {"$lte": 0}}, {"score": None}],
        })
        return serialize_docs(list(cursor))

    def update_status(self, applicant_id: str, status: str) -> dict:
        """
        Any transition is accepted. The matching flag is set and the
        first time a status is reached is kept in status_history.
        """
        doc = self.get(applicant_id)
        if doc is None:
            raise NotFound("Applicant not found")

        now = utcnow()
        fields = {"status": status, status_flag(status): True, "updated_at": now}
        if status not in (doc.get("status_history") or {}):
            fields[f"status_history.{status}"] = now
        self.collection.update_one({"_id": ObjectId(doc["_id"])}, {"$set": fields})
        return self.get(applicant_id)

    def update_score(self, applicant_id: str, score: int, breakdown: dict) -> None:
        self.collection.update_one(
            {"_id": ObjectId(applicant_id)},
            {"$set": {"score": score, "score_breakdown": breakdown, "updated_at": utcnow()}},
        )

    def update_gpa(self, applicant_id: str, gpa: float) -> None:
        self.collection.update_one({"_id": ObjectId(applicant_id)}, {"$set": {"gpa": gpa}})

    def soft_delete(self, applicant_id: str, deleted_by=None) -> bool:
        oid = to_object_id(applicant_id)
        if oid is None:
            return False
        result = self.collection.update_one(
            {"_id": oid, "is_deleted": {"$ne": True}},
            {"$set": {"is_deleted": True, "deleted_at": utcnow(), "deleted_by": deleted_by}},
        )
        return result.modified_count > 0


# ============================================================
# PARSED RESUMES COLLECTION
# Stores LLM-structured portal resumes
# ============================================================

class ParsedResumeService:
    """
    Handles parsed resume storage.
    Each upload is a new version; reads return the latest.
    """

    def __init__(self):
        self.collection: Collection = get_collection(COLLECTIONS["parsed_resumes"])

    def insert(self, user_id: int, filename: str, parsed_data: dict) -> str:
        """
        Insert parsed resume data.

        Returns:
            MongoDB ObjectId as string
        """
        version = self.collection.count_documents({"user_id": user_id}) + 1
        doc = {
            "user_id": user_id,
            "filename": filename,
            "parsed_data": parsed_data,
            "parsed_at": utcnow(),
            "version": version,
        }
        result = self.collection.insert_one(doc)
        return str(result.inserted_id)

    def get_by_id(self, mongo_id: str) -> Optional[dict]:
        oid = to_object_id(mongo_id)
        if oid is None:
            return None
        return serialize_doc(self.collection.find_one({"_id": oid}))

    def get_latest(self, user_id: int) -> Optional[dict]:
        """Fetch latest parsed resume for a user."""
        doc = self.collection.find_one(
            {"user_id": user_id},
            sort=[("version", -1)]
        )
        return serialize_doc(doc)
