import json

import mongomock
import pytest
from fastapi.testclient import TestClient

from app.core.config import get_settings
from app.db import mongodb
from app.services import job_lookup, llm_client, staging_store
from app.services.staging_store import CvStagingStore, StagedCv


CRITERIA = {
    "jobId": 1,
    "jobCode": "JOB0001",
    "title": "Backend Engineer",
    "companyName": "Acme",
    "companyId": 10,
    "description": "Build Python services",
    "requirements": ["Python", "FastAPI", "MongoDB"],
    "experience": "2 years",
    "qualification": "BS Computer Science",
    "location": "Lahore",
    "jobType": "full-time",
    "workType": "onsite",
}


class FakeLLM:
    """Scripted LLM: every call pops the next queued reply (text or exception)."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def complete(self, system_prompt, user_text, model=None, temperature=0.1,
                 json_mode=True, max_tokens=None):
        self.calls.append({"system": system_prompt, "user": user_text, "temperature": temperature})
        if not self.replies:
            raise AssertionError("unexpected LLM call")
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def profile_reply(email="jane@example.com", name="Jane Doe", professional=12, gpa="3.5/4"):
    return json.dumps({
        "personalInfo": {
            "fullName": name,
            "email": email,
            "phone": "+92 300 0000000",
            "location": "Lahore, Pakistan",
            "professionalJob": professional,
            "internship": 6,
            "freelancing": 0,
        },
        "education": [{"degree": "BS CS", "institution": "FAST", "gpa": gpa, "duration": "2016-2020"}],
        "experience": [{"role": "Engineer", "company": "Acme", "years": "2021-2022",
                        "responsibilities": ["APIs"]}],
        "skills": {"technical": ["Python"], "soft": ["Teamwork"], "tools": ["Git"]},
    })


def score_reply(technical=12, tools=3, soft=2, role_fit=7, education=8, location=5, other=3):
    return json.dumps({
        "skills": {"technical": technical, "tools": tools, "soft": soft},
        "roleFit": role_fit,
        "education": education,
        "location": location,
        "other": other,
        "matchDetails": "Solid backend match",
        "strengths": ["Python"],
        "gaps": ["Kubernetes"],
        "recommendations": ["Interview"],
        "matchedSkills": ["Python"],
        "experienceMatch": "Meets requirement",
    })


def staged(cv_id, text="Jane Doe resume text"):
    return StagedCv(id=cv_id, filename=f"cv{cv_id}.txt", content=text.encode(), content_type="text/plain")


@pytest.fixture
def mongo_db():
    db = mongomock.MongoClient()["talentgrid_test"]
    mongodb.set_mongo_db(db)
    yield db
    mongodb.set_mongo_db(None)


@pytest.fixture
def fake_llm(monkeypatch):
    fake = FakeLLM()
    monkeypatch.setattr(llm_client, "_llm_client", fake)
    return fake


@pytest.fixture
def store(monkeypatch):
    fresh = CvStagingStore()
    monkeypatch.setattr(staging_store, "_staging_store", fresh)
    return fresh


@pytest.fixture
def no_throttle(monkeypatch):
    monkeypatch.setattr(get_settings(), "llm_min_delay_ms", 0)


@pytest.fixture
def jobs(monkeypatch):
    """Relational lookups served from memory: job 1 / JOB0001 and user 7."""
    def fetch_job_criteria(job_ref):
        if str(job_ref).strip().upper() in ("1", "JOB0001"):
            return dict(CRITERIA)
        return None

    monkeypatch.setattr(job_lookup, "fetch_job_criteria", fetch_job_criteria)
    monkeypatch.setattr(
        job_lookup, "fetch_user_email",
        lambda user_id: "portal.user@example.com" if user_id == 7 else None,
    )
    return CRITERIA


@pytest.fixture
def client(mongo_db, fake_llm, store, no_throttle, jobs):
    from app.main import app
    # No context manager: startup (index creation) is not needed here
    return TestClient(app)
