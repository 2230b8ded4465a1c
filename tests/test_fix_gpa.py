from scripts.fix_gpa import fix_gpas, needs_fix


def _applicant(db, gpa, education):
    return db["applicants"].insert_one({
        "job_id": 1, "is_deleted": False, "gpa": gpa,
        "extracted_data": {"education": education},
    }).inserted_id


def test_needs_fix():
    assert needs_fix(None)
    assert needs_fix(8.5)
    assert needs_fix("abc")
    assert not needs_fix(3.2)


def test_backfill(mongo_db):
    missing = _applicant(mongo_db, None, [{"gpa": "8.5/10"}])
    wrong_scale = _applicant(mongo_db, 8.5, [{"gpa": "garbage"}])
    fine = _applicant(mongo_db, 3.9, [{"gpa": "2.0"}])

    stats = fix_gpas(mongo_db["applicants"])

    assert stats == {"checked": 2, "updated": 2, "unparseable": 1}
    assert mongo_db["applicants"].find_one({"_id": missing})["gpa"] == 3.4
    assert mongo_db["applicants"].find_one({"_id": wrong_scale})["gpa"] is None
    assert mongo_db["applicants"].find_one({"_id": fine})["gpa"] == 3.9


def test_dry_run_writes_nothing(mongo_db):
    missing = _applicant(mongo_db, None, [{"gpa": "3.1"}])
    assert fix_gpas(mongo_db["applicants"], dry_run=True)["updated"] == 1
    assert mongo_db["applicants"].find_one({"_id": missing})["gpa"] is None
