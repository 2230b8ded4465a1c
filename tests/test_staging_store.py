from app.services.staging_store import CvStagingStore


def test_runs_are_isolated():
    store = CvStagingStore()
    store.create("run-a", "a1.pdf", b"a1")
    store.create("run-a", "a2.pdf", b"a2")
    store.create("run-b", "b1.pdf", b"b1")

    assert [cv.filename for cv in store.list("run-a")] == ["a1.pdf", "a2.pdf"]
    assert [cv.id for cv in store.list("run-a")] == ["1", "2"]
    assert [cv.filename for cv in store.list("run-b")] == ["b1.pdf"]
    assert sorted(store.runs()) == ["run-a", "run-b"]


def test_clear_only_touches_its_run():
    store = CvStagingStore()
    store.create("run-a", "a1.pdf", b"a1")
    store.create("run-b", "b1.pdf", b"b1")

    assert store.clear("run-a") == 1
    assert store.list("run-a") == []
    assert len(store.list("run-b")) == 1
    assert store.clear("missing") == 0


def test_get_and_summary():
    store = CvStagingStore()
    cv = store.create("run", "cv.docx", b"12345", "application/msword")

    assert store.get("run", "1") is cv
    assert store.get("run", "2") is None
    assert cv.size == 5
    assert set(cv.summary()) == {"id", "filename", "upload_date"}


def test_listing_is_a_snapshot():
    store = CvStagingStore()
    store.create("run", "a.txt", b"a")
    snapshot = store.list("run")
    store.create("run", "b.txt", b"b")
    assert len(snapshot) == 1


def test_new_run_ids_are_unique():
    assert CvStagingStore.new_run_id() != CvStagingStore.new_run_id()
