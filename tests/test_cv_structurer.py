from datetime import date

import pytest

from app.core.errors import ExtractionFailed, LLMMalformedOutput, LLMRateLimited
from app.services.cv_structurer import (
    CvStructurer,
    CvToolsService,
    ResumeIntakeService,
    has_experience_months,
    normalize_profile,
)
from app.services.mongo_service import ParsedResumeService
from tests.conftest import FakeLLM, profile_reply


def test_normalize_fills_every_default():
    assert normalize_profile({}) == {
        "personalInfo": {
            "fullName": "",
            "email": "",
            "phone": "",
            "location": "",
            "professionalJob": 0,
            "internship": 0,
            "freelancing": 0,
        },
        "education": [],
        "experience": [],
        "skills": {"technical": [], "soft": [], "tools": []},
    }


def test_normalize_non_dict_input():
    assert normalize_profile(["not", "a", "profile"])["skills"] == {"technical": [], "soft": [], "tools": []}
    assert normalize_profile(None)["personalInfo"]["professionalJob"] == 0


def test_normalize_coerces_loose_model_output():
    profile = normalize_profile({
        "personalInfo": {"name": "Ali", "email": " Ali@Example.COM ", "professionalJob": "17",
                         "internship": -4, "freelancing": "n/a"},
        "education": {"degree": "BS", "university": "NUST", "cgpa": "3.4", "year": "2020"},
        "experience": [{"details": {"position": "Dev", "company": "X", "responsibilities": "Code"}},
                       "junk"],
        "skills": ["Python", "", None],
    })

    assert profile["personalInfo"]["fullName"] == "Ali"
    assert profile["personalInfo"]["email"] == "ali@example.com"
    assert profile["personalInfo"]["professionalJob"] == 17
    assert profile["personalInfo"]["internship"] == 0
    assert profile["personalInfo"]["freelancing"] == 0
    assert profile["education"] == [{"degree": "BS", "institution": "NUST", "gpa": "3.4", "duration": "2020"}]
    assert profile["experience"] == [{"role": "Dev", "company": "X", "years": "", "responsibilities": ["Code"]}]
    assert profile["skills"]["technical"] == ["Python"]


def test_has_experience_months():
    assert has_experience_months({"personalInfo": {"professionalJob": 0, "internship": 0, "freelancing": 0}})
    assert not has_experience_months({"personalInfo": {"professionalJob": 3}})
    assert not has_experience_months(None)


def test_prompt_anchors_today_and_calculation_rule():
    prompt = CvStructurer(FakeLLM()).build_prompt(date(2026, 1, 15))
    assert "Today is Jan 2026" in prompt
    assert "17 months" in prompt
    assert '"professionalJob": 0' in prompt


def test_structure_txt_resume():
    llm = FakeLLM()
    llm.queue("```json\n" + profile_reply(email="JANE@Example.com") + "\n```")

    profile = CvStructurer(llm).structure(b"Jane Doe\nPython developer", "jane.txt", "text/plain")

    assert profile["personalInfo"]["email"] == "jane@example.com"
    assert profile["personalInfo"]["professionalJob"] == 12
    assert llm.calls[0]["temperature"] == 0.1
    assert llm.calls[0]["user"].startswith("Jane Doe")


def test_structure_truncates_text():
    llm = FakeLLM()
    llm.queue(profile_reply())
    CvStructurer(llm).structure(b"x" * 20000, "long.txt")
    assert len(llm.calls[0]["user"]) == 6000


def test_empty_text_fails_before_llm_call():
    llm = FakeLLM()
    with pytest.raises(ExtractionFailed):
        CvStructurer(llm).structure(b"   \n  ", "blank.txt")
    assert llm.calls == []


def test_malformed_output_raises():
    llm = FakeLLM()
    llm.queue("Sorry, I cannot help with that.")
    with pytest.raises(LLMMalformedOutput):
        CvStructurer(llm).structure(b"Some resume", "cv.txt")


def test_gateway_errors_propagate():
    llm = FakeLLM()
    llm.queue(LLMRateLimited("Rate limit reached"))
    with pytest.raises(LLMRateLimited):
        CvStructurer(llm).structure(b"Some resume", "cv.txt")


def test_cv_tools_return_failure_marker():
    llm = FakeLLM()
    llm.queue("not json at all")
    result = CvToolsService(llm).parse_basic("Resume text")
    assert result["raw"] == "not json at all"
    assert "error" in result


def test_academic_parse_uses_longer_prefix():
    llm = FakeLLM()
    llm.queue('{"name": "Dr. A", "researchPublications": []}')
    result = CvToolsService(llm).parse_academic("y" * 30000)
    assert result["name"] == "Dr. A"
    assert "y" * 15000 in llm.calls[0]["user"]
    assert "y" * 15001 not in llm.calls[0]["user"]


def test_enrich_merges_suggestions():
    llm = FakeLLM()
    llm.queue('{"summary_improvement": "Add metrics", "missing_sections": ["Projects"]}')
    result = CvToolsService(llm).enrich({"name": "Jane"}, {"target": "backend"})

    assert result["status"] == "success"
    assert result["combined_cv"]["name"] == "Jane"
    assert result["combined_cv"]["ai_enrichment"]["missing_sections"] == ["Projects"]
    assert llm.calls[0]["temperature"] == 0.4


def test_resume_intake_stores_versions(mongo_db):
    llm = FakeLLM()
    llm.queue(profile_reply(name="First"), profile_reply(name="Second"))
    intake = ResumeIntakeService(CvStructurer(llm))

    intake.parse_and_store(7, b"resume v1", "v1.txt")
    second = intake.parse_and_store(7, b"resume v2", "v2.txt")

    latest = ParsedResumeService().get_latest(7)
    assert latest["_id"] == second["resume_id"]
    assert latest["version"] == 2
    assert latest["parsed_data"]["personalInfo"]["fullName"] == "Second"
