import pytest

from app.core.errors import NotFound
from app.services import job_lookup

JOB_ROW = {
    "job_id": 7, "job_code": "JOB0007", "title": "Data Engineer", "description": None,
    "experience": "3 years", "qualification": "BS", "location": "Karachi",
    "job_type": "full-time", "work_type": "remote", "company_id": 2, "company_name": "Globex",
}


@pytest.fixture
def postgres(monkeypatch):
    """Captures queries and answers them from memory."""
    queries = []

    def fetch_one(sql, params=None):
        queries.append((sql, params))
        if params in ({"job_id": 7}, {"code": "job0007"}):
            return dict(JOB_ROW)
        if params == {"id": 3}:
            return {"email": " Someone@Example.com "}
        return None

    def execute_raw_sql(sql, params=None):
        queries.append((sql, params))
        return [{"skill_name": "Python"}, {"skill_name": "SQL"}]

    monkeypatch.setattr(job_lookup, "fetch_one", fetch_one)
    monkeypatch.setattr(job_lookup, "execute_raw_sql", execute_raw_sql)
    return queries


def test_criteria_by_id(postgres):
    criteria = job_lookup.fetch_job_criteria(7)

    assert criteria["jobId"] == 7
    assert criteria["companyName"] == "Globex"
    assert criteria["requirements"] == ["Python", "SQL"]
    assert criteria["description"] == ""
    assert postgres[1][1] == {"job_id": 7}


def test_criteria_by_job_code(postgres):
    assert job_lookup.fetch_job_criteria(" job0007 ")["jobCode"] == "JOB0007"
    assert "UPPER(j.job_code)" in postgres[0][0]


def test_unknown_job(postgres):
    assert job_lookup.fetch_job_criteria("JOB9999") is None
    with pytest.raises(NotFound):
        job_lookup.resolve_job("JOB9999")


def test_resolve_job_code_to_canonical_id(postgres):
    job_id, criteria = job_lookup.resolve_job("job0007")
    assert job_id == 7
    assert criteria["title"] == "Data Engineer"


def test_supplied_criteria_skip_lookup(postgres):
    assert job_lookup.resolve_job("7", {"title": "Custom"}) == (7, {"title": "Custom"})
    assert postgres == []


def test_supplied_criteria_with_job_code_still_resolve_id(postgres):
    job_id, criteria = job_lookup.resolve_job("job0007", {"title": "Custom"})
    assert job_id == 7
    assert criteria == {"title": "Custom"}


def test_user_email(postgres):
    assert job_lookup.fetch_user_email(3) == "someone@example.com"
    assert job_lookup.fetch_user_email(4) is None
