import pytest

from wallet_db.local import init_db
from wallet_db.nosql_adapter import (
    ArrayUnion,
    CeilingExceededError,
    Increment,
    NoSQLAdapter,
)


@pytest.fixture
def adapter(tmp_path) -> NoSQLAdapter:
    return init_db(str(tmp_path / "adapter.db"))


def new_user(uid: str = "u1", total: int = 0, documents=None) -> dict:
    return {"uid": uid, "documents": documents or [], "totalSize": total}


def new_record(user_id: str, uploaded_at: str, size: int = 10) -> dict:
    return {
        "userId": user_id,
        "fileName": "a.pdf",
        "storagePath": f"{user_id}/a.pdf",
        "fileSize": size,
        "mimeType": "application/pdf",
        "uploadedAt": uploaded_at,
    }


def test_create_generates_id_and_get_returns_document(adapter: NoSQLAdapter):
    doc_id = adapter.create_document("documents", new_record("u1", "2026-01-01T00:00:00+00:00"))

    assert len(doc_id) == 32
    assert adapter.get_document("documents", doc_id)["userId"] == "u1"
    assert adapter.get_document("documents", "missing") is None


def test_set_document_upserts_and_bumps_version(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user())
    _, first_version = adapter.get_document_with_version("users", "u1")

    adapter.set_document("users", "u1", new_user(total=5))
    document, version = adapter.get_document_with_version("users", "u1")

    assert document["totalSize"] == 5
    assert version == first_version + 1


def test_schema_validation_rejects_bad_documents(adapter: NoSQLAdapter):
    with pytest.raises(ValueError, match="validation failed"):
        adapter.set_document("users", "u1", {"uid": "u1", "documents": [], "totalSize": -1})
    with pytest.raises(ValueError):
        adapter.create_document("documents", {"userId": "u1"})


def test_unknown_collection_is_rejected(adapter: NoSQLAdapter):
    with pytest.raises(ValueError, match="Unknown collection"):
        adapter.get_document("invoices", "x")


def test_update_fields_merges_and_reports_missing(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user())

    assert adapter.update_fields("users", "u1", {"masterPin": "1234"})
    assert adapter.get_document("users", "u1")["masterPin"] == "1234"
    assert adapter.update_fields("users", "nobody", {"masterPin": "1"}) is False


def test_increment_field_floors_at_zero(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user(total=100))

    assert adapter.increment_field("users", "u1", "totalSize", 50) == 150
    assert adapter.increment_field("users", "u1", "totalSize", -500, floor=0) == 0
    assert adapter.increment_field("users", "nobody", "totalSize", 1) is None


def test_increment_ceiling_aborts_whole_update(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user(total=90))

    with pytest.raises(CeilingExceededError) as exc_info:
        adapter.update_fields("users", "u1", {
            "documents": ArrayUnion("doc-1"),
            "totalSize": Increment(20, ceiling=100),
        })

    assert exc_info.value.current == 90
    assert adapter.get_document("users", "u1") == new_user(total=90)


def test_increment_ceiling_does_not_block_decrements():
    assert Increment(-10, floor=0, ceiling=100).apply(150) == 140


def test_array_union_skips_existing_items(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user(documents=["doc-1"]))

    adapter.array_union("users", "u1", "documents", "doc-1", "doc-2")

    assert adapter.get_document("users", "u1")["documents"] == ["doc-1", "doc-2"]


def test_compare_and_set_rejects_stale_version(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user(total=10))
    _, version = adapter.get_document_with_version("users", "u1")

    assert adapter.compare_and_set("users", "u1", version, {"totalSize": Increment(5)})
    # the first write moved the version on
    assert not adapter.compare_and_set("users", "u1", version, {"totalSize": 0})
    assert adapter.get_document("users", "u1")["totalSize"] == 15
    assert not adapter.compare_and_set("users", "nobody", 1, {"totalSize": 0})


def test_transform_document_rewrites_under_lock(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user(total=10, documents=["doc-1", "doc-2"]))
    _, version = adapter.get_document_with_version("users", "u1")

    updated = adapter.transform_document(
        "users", "u1",
        lambda doc: {**doc, "documents": doc["documents"][1:], "totalSize": doc["totalSize"] - 4},
    )

    assert updated["documents"] == ["doc-2"]
    assert adapter.get_document_with_version("users", "u1") == (updated, version + 1)
    assert adapter.transform_document("users", "nobody", lambda doc: doc) is None


def test_transform_document_aborts_when_mutator_raises(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user(total=10))

    def reject(doc):
        raise LookupError("not here")

    with pytest.raises(LookupError):
        adapter.transform_document("users", "u1", reject)
    with pytest.raises(ValueError, match="Document validation failed"):
        adapter.transform_document("users", "u1", lambda doc: {**doc, "totalSize": -1})
    assert adapter.get_document("users", "u1")["totalSize"] == 10


def test_query_orders_and_filters(adapter: NoSQLAdapter):
    adapter.create_document("documents", new_record("u1", "2026-01-01T00:00:00+00:00"), doc_id="old")
    adapter.create_document("documents", new_record("u1", "2026-03-01T00:00:00+00:00"), doc_id="new")
    adapter.create_document("documents", new_record("u2", "2026-02-01T00:00:00+00:00"), doc_id="other")

    found = adapter.query_documents(
        "documents", {"userId": "u1"}, order_by="uploadedAt", descending=True, include_ids=True
    )

    assert [doc["_id"] for doc in found] == ["new", "old"]
    assert adapter.count_documents("documents") == 3
    assert adapter.count_documents("documents", {"userId": "u2"}) == 1


def test_delete_document(adapter: NoSQLAdapter):
    adapter.set_document("users", "u1", new_user())

    assert adapter.delete_document("users", "u1")
    assert not adapter.delete_document("users", "u1")
