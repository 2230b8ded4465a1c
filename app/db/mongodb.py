"""
MongoDB Connection Utility

MongoDB stores:
- Batches of bulk-screened resumes (one per screening run)
- Applicants (portal and bulk) with their extracted profiles
- Parsed portal resumes (structured JSON returned by the LLM)

WHY MongoDB for these?
- Schema-flexible: LLM outputs vary in structure
- Batch results are append-only arrays of nested documents
- No joins needed: each document is self-contained
"""
import logging

from pymongo import ASCENDING, MongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from app.core.config import get_settings

settings = get_settings()
logger = logging.getLogger(__name__)

# Global client (connection pooling handled internally by pymongo)
_client: MongoClient = None
_db: Database = None


def get_mongo_client() -> MongoClient:
    """Get or create MongoDB client (singleton pattern)"""
    global _client
    if _client is None:
        _client = MongoClient(settings.mongodb_uri)
    return _client


def get_mongo_db() -> Database:
    """Get the talentgrid_docs database"""
    global _db
    if _db is None:
        client = get_mongo_client()
        _db = client[settings.mongodb_db]
    return _db


def set_mongo_db(db: Database) -> None:
    """Swap the active database (used by tests and scripts)."""
    global _db
    _db = db


def get_collection(name: str) -> Collection:
    """
    Get a specific collection.
    Collections we'll use:
    - batches: Screening runs and their per-resume results
    - applicants: Portal and bulk applicants per job
    - parsed_resumes: LLM-structured portal resumes
    """
    db = get_mongo_db()
    return db[name]


def test_mongo_connection() -> bool:
    """
    Test if MongoDB is reachable.
    Returns True if connection successful, False otherwise.
    """
    try:
        client = get_mongo_client()
        # ping command checks connection
        client.admin.command('ping')
        return True
    except Exception as e:
        logger.warning("MongoDB connection failed: %s", e)
        return False


# Collection name constants (avoid typos)
COLLECTIONS = {
    "batches": "batches",
    "applicants": "applicants",
    "parsed_resumes": "parsed_resumes",
}


def init_mongo_indexes():
    """
    Create indexes for better query performance and dedup guarantees.
    Call this once during app startup.
    """
    db = get_mongo_db()

    batches = db[COLLECTIONS["batches"]]
    batches.create_index([("job_id", ASCENDING), ("batch_id", ASCENDING)], unique=True)
    batches.create_index([("job_id", ASCENDING), ("batch_number", ASCENDING)])

    # At most one live applicant per (job, email) for bulk and per (job, user) for portal
    applicants = db[COLLECTIONS["applicants"]]
    applicants.create_index(
        [("job_id", ASCENDING), ("email", ASCENDING)],
        name="uniq_bulk_email_per_job",
        unique=True,
        partialFilterExpression={"source": "Bulk", "is_deleted": False},
    )
    applicants.create_index(
        [("job_id", ASCENDING), ("user_id", ASCENDING)],
        name="uniq_portal_user_per_job",
        unique=True,
        partialFilterExpression={"source": "Portal", "is_deleted": False},
    )

    db[COLLECTIONS["parsed_resumes"]].create_index("user_id")

    logger.info("MongoDB indexes created successfully")
