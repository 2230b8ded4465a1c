"""
Job-criteria lookup.

Jobs, companies and users belong to the relational CRUD subsystem.
The screening pipeline only reads from it:
- job criteria for scoring (by numeric job_id or job code like "JOB0007")
- a portal user's account email for applicant dedup
"""

import logging
from typing import Optional, Tuple, Union

from app.core.errors import NotFound
from app.db.postgres import execute_raw_sql, fetch_one

logger = logging.getLogger(__name__)

JobRef = Union[int, str]


def _criteria_from_row(row: dict, requirements: list) -> dict:
    return {
        "jobId": row["job_id"],
        "jobCode": row.get("job_code"),
        "title": row.get("title"),
        "companyName": row.get("company_name"),
        "companyId": row.get("company_id"),
        "description": row.get("description") or "",
        "requirements": requirements,
        "experience": row.get("experience"),
        "qualification": row.get("qualification"),
        "location": row.get("location"),
        "jobType": row.get("job_type"),
        "workType": row.get("work_type"),
    }


def fetch_job_criteria(job_ref: JobRef) -> Optional[dict]:
    """
    Load scoring criteria for a job from PostgreSQL.
    Accepts the canonical job_id or the human-facing job code.
    """
    sql = """
        SELECT j.job_id, j.job_code, j.title, j.description, j.experience,
               j.qualification, j.location, j.job_type, j.work_type,
               c.company_id, c.company_name
        FROM jobs j
        JOIN companies c ON j.company_id = c.company_id
    """
    ref = str(job_ref).strip()
    if ref.isdigit():
        row = fetch_one(sql + " WHERE j.job_id = :job_id", {"job_id": int(ref)})
    else:
        row = fetch_one(sql + " WHERE UPPER(j.job_code) = UPPER(:code)", {"code": ref})

    if row is None:
        logger.info("Job %s not found", job_ref)
        return None

    skills = execute_raw_sql(
        """
        SELECT s.skill_name
        FROM job_required_skills jrs
        JOIN skills s ON jrs.skill_id = s.skill_id
        WHERE jrs.job_id = :job_id
        ORDER BY jrs.is_mandatory DESC, s.skill_name
        """,
        {"job_id": row["job_id"]},
    )
    return _criteria_from_row(row, [s["skill_name"] for s in skills])


def resolve_job(job_ref: JobRef, criteria: dict = None) -> Tuple[int, dict]:
    """
    Canonical job id plus the criteria to score against.
    Caller-supplied criteria are used as-is when the reference is already canonical.

    Raises:
        NotFound: unknown job
    """
    ref = str(job_ref).strip()
    if criteria and ref.isdigit():
        return int(ref), criteria

    found = fetch_job_criteria(ref)
    if found is None:
        raise NotFound(f"Job {job_ref} not found")
    return found["jobId"], criteria or found


def fetch_user_email(user_id: int) -> Optional[str]:
    row = fetch_one("SELECT email FROM users WHERE user_id = :id", {"id": user_id})
    if not row or not row["email"]:
        return None
    return row["email"].strip().lower()
