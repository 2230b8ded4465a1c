import json

from app.core.errors import LLMRateLimited, LLMTransportFailed
from app.services.applicant_service import ApplicantDeduplicator
from app.services.batch_orchestrator import BatchOrchestrator, CvOutcome, to_ndjson
from app.services.cv_structurer import CvStructurer
from app.services.mongo_service import ApplicantService, BatchService
from app.services.scoring_service import CandidateScorer
from tests.conftest import CRITERIA, FakeLLM, profile_reply, score_reply, staged


def make_orchestrator(llm, sleeps=None, deduplicator=True):
    return BatchOrchestrator(
        structurer=CvStructurer(llm),
        scorer=CandidateScorer(llm),
        batch_service=BatchService(),
        deduplicator=ApplicantDeduplicator() if deduplicator else None,
        sleep=(sleeps.append if sleeps is not None else (lambda seconds: None)),
        min_delay_ms=500,
    )


def test_rate_limit_aborts_the_run(mongo_db):
    llm = FakeLLM()
    llm.queue(
        profile_reply(email="one@example.com"), score_reply(),
        LLMRateLimited("Rate limit reached for model"),
    )
    sleeps = []

    records = list(make_orchestrator(llm, sleeps).run(
        None, "Spring intake", 1, CRITERIA, [staged("1"), staged("2"), staged("3")]
    ))

    assert len(records) == 2
    assert records[0]["analysis"]["status"] == "completed"
    assert records[1] == {
        "cv": records[1]["cv"],
        "analysis": {"status": "failed", "error": "Rate limit reached for model"},
    }
    assert records[1]["cv"]["id"] == "2"
    # CV 3 was never attempted
    assert len(llm.calls) == 3
    assert sleeps == [0.5]

    batch = BatchService().get(1, "BATCH0001")
    assert batch["status"] == "failed"
    assert batch["is_failed"] and not batch["is_completed"]
    assert batch["error"] == "Rate limit reached for model"
    assert [r["cv"]["id"] for r in batch["resumes"]] == ["1", "2"]
    assert ApplicantService().list_by_job(1) == []


def test_other_failures_are_isolated(mongo_db):
    llm = FakeLLM()
    llm.queue(
        LLMTransportFailed("connection reset"),
        "this is not json",
        profile_reply(email="three@example.com"), score_reply(),
    )

    records = list(make_orchestrator(llm).run(
        "BATCH0042", "Retry", 1, CRITERIA, [staged("1"), staged("2"), staged("3")]
    ))

    assert [r["analysis"]["status"] for r in records] == ["failed", "failed", "completed"]
    assert records[1]["analysis"]["error"] == "Invalid JSON returned by AI"

    batch = BatchService().get(1, "BATCH0042")
    assert batch["status"] == "completed"
    assert batch["is_uploaded"] and not batch["is_processing"]
    applicants = ApplicantService().list_by_job(1)
    assert [a["email"] for a in applicants] == ["three@example.com"]


def test_unreadable_cv_fails_without_llm_call(mongo_db):
    llm = FakeLLM()
    llm.queue(profile_reply(), score_reply())

    records = list(make_orchestrator(llm).run(
        None, "Mixed", 1, CRITERIA, [staged("1", text="   "), staged("2")]
    ))

    assert records[0]["analysis"]["status"] == "failed"
    assert records[1]["analysis"]["status"] == "completed"
    assert len(llm.calls) == 2


def test_same_email_creates_one_applicant(mongo_db):
    llm = FakeLLM()
    llm.queue(
        profile_reply(email="dup@example.com", gpa="8.5/10"), score_reply(),
        profile_reply(email="DUP@example.com"), score_reply(),
    )

    records = list(make_orchestrator(llm).run(None, "Dupes", 1, CRITERIA, [staged("1"), staged("2")]))

    assert [r["analysis"]["status"] for r in records] == ["completed", "completed"]
    applicants = ApplicantService().list_by_job(1)
    assert len(applicants) == 1
    assert applicants[0]["source"] == "Bulk"
    assert applicants[0]["batch_id"] == "BATCH0001"
    assert applicants[0]["gpa"] == 3.4
    assert applicants[0]["score"] == records[0]["analysis"]["score"]


def test_success_record_shape(mongo_db):
    llm = FakeLLM()
    llm.queue(profile_reply(), score_reply())

    record = next(make_orchestrator(llm, deduplicator=False).run(None, "One", 1, CRITERIA, [staged("1")]))

    assert set(record) == {"cv", "extractedData", "analysis"}
    assert record["cv"]["filename"] == "cv1.txt"
    assert record["analysis"]["locked"] is True
    assert record["analysis"]["status"] == "completed"
    assert 0 <= record["analysis"]["score"] <= 100
    assert record["extractedData"]["personalInfo"]["email"] == "jane@example.com"


def test_rerun_resets_existing_batch(mongo_db):
    llm = FakeLLM()
    llm.queue(profile_reply(), score_reply(), profile_reply(), score_reply())
    orchestrator = make_orchestrator(llm, deduplicator=False)

    list(orchestrator.run(None, "First", 1, CRITERIA, [staged("1")]))
    list(orchestrator.run("BATCH0001", "Second", 1, CRITERIA, [staged("9")]))

    batch = BatchService().get(1, "BATCH0001")
    assert batch["name"] == "Second"
    assert [r["cv"]["id"] for r in batch["resumes"]] == ["9"]
    assert len(BatchService().list_by_job(1)) == 1


def test_batch_numbers_are_sequential_per_job(mongo_db):
    llm = FakeLLM()
    llm.queue(*[profile_reply(), score_reply()] * 2)
    orchestrator = make_orchestrator(llm, deduplicator=False)

    list(orchestrator.run(None, "A", 1, CRITERIA, [staged("1")]))
    list(orchestrator.run(None, "B", 1, CRITERIA, [staged("1")]))

    assert [(b["batch_id"], b["batch_number"]) for b in BatchService().list_by_job(1)] == [
        ("BATCH0001", 1), ("BATCH0002", 2)
    ]


def test_empty_worklist_touches_nothing(mongo_db):
    records = list(make_orchestrator(FakeLLM()).run(None, "Empty", 1, CRITERIA, []))
    assert records == []
    assert BatchService().list_by_job(1) == []


def test_each_job_numbers_its_own_batches(mongo_db):
    mongo_db["batches"].create_index([("job_id", 1), ("batch_id", 1)], unique=True)
    llm = FakeLLM()
    llm.queue(
        profile_reply(email="first@example.com"), score_reply(),
        profile_reply(email="second@example.com"), score_reply(),
    )
    orchestrator = make_orchestrator(llm)

    list(orchestrator.run(None, "Job one run", 1, CRITERIA, [staged("1")]))
    list(orchestrator.run(None, "Job two run", 2, CRITERIA, [staged("2")]))

    first, second = BatchService().get(1, "BATCH0001"), BatchService().get(2, "BATCH0001")
    assert (first["name"], first["status"]) == ("Job one run", "completed")
    assert (second["name"], second["status"]) == ("Job two run", "completed")
    assert [r["cv"]["id"] for r in first["resumes"]] == ["1"]
    assert [r["cv"]["id"] for r in second["resumes"]] == ["2"]
    assert [a["email"] for a in ApplicantService().list_by_job(1)] == ["first@example.com"]
    assert [a["email"] for a in ApplicantService().list_by_job(2)] == ["second@example.com"]


def test_batch_id_of_another_job_is_not_reset(mongo_db):
    llm = FakeLLM()
    llm.queue(
        profile_reply(email="first@example.com"), score_reply(),
        profile_reply(email="second@example.com"), score_reply(),
    )
    orchestrator = make_orchestrator(llm)

    list(orchestrator.run(None, "Original", 1, CRITERIA, [staged("1")]))
    list(orchestrator.run("BATCH0001", "Borrowed id", 2, CRITERIA, [staged("9")]))

    original = BatchService().get(1, "BATCH0001")
    assert original["name"] == "Original"
    assert original["status"] == "completed"
    assert [r["cv"]["id"] for r in original["resumes"]] == ["1"]

    borrowed = BatchService().get(2, "BATCH0001")
    assert borrowed["job_id"] == 2
    assert [r["cv"]["id"] for r in borrowed["resumes"]] == ["9"]
    assert [a["email"] for a in ApplicantService().list_by_job(1)] == ["first@example.com"]
    assert [a["email"] for a in ApplicantService().list_by_job(2)] == ["second@example.com"]


def test_generated_id_skips_explicit_ids(mongo_db):
    batches = BatchService()
    batches.start_run("BATCH0002", 1, "Named")

    generated = batches.start_run(None, 1, "Generated")

    assert generated["batch_id"] == "BATCH0003"
    assert [b["batch_id"] for b in batches.list_by_job(1)] == ["BATCH0002", "BATCH0003"]


def test_ndjson_lines_are_independent():
    outcome = CvOutcome.failure({"id": "1", "filename": "a.pdf"}, RuntimeError("boom"))
    line = to_ndjson(outcome.stream_record())
    assert line.endswith("\n") and line.count("\n") == 1
    assert json.loads(line) == {"cv": {"id": "1", "filename": "a.pdf"},
                                "analysis": {"status": "failed", "error": "boom"}}
    assert not outcome.rate_limited


def test_rate_limit_detected_from_message():
    outcome = CvOutcome.failure({"id": "1"}, RuntimeError("Provider says: Rate limit exceeded"))
    assert outcome.rate_limited
