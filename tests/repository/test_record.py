"""Tests for the dirty-tracked Record."""

import pytest

from webrepo.repository import Record


class Guarded(Record):
    _accessible = {"*": True, "id": False}


@pytest.mark.unit
class TestRecord:
    """Test field access and dirty tracking."""

    def test_new_record_is_dirty(self) -> None:
        record = Record({"title": "x", "status": "draft"})

        assert record.is_new()
        assert record.dirty_fields == ["title", "status"]

    def test_clean_record(self) -> None:
        record = Record({"title": "x"}, new=False, clean=True, source="articles")

        assert not record.is_new()
        assert not record.is_dirty()
        assert record.source == "articles"

    def test_only_changes_mark_dirty(self) -> None:
        record = Record({"title": "x"}, clean=True)

        record.set("title", "x")
        assert not record.is_dirty()

        record["title"] = "y"
        assert record.is_dirty("title")

    def test_set_requires_value(self) -> None:
        with pytest.raises(TypeError):
            Record().set("title")

    def test_mapping_protocol(self) -> None:
        record = Record({"title": "x", "status": "draft"})
        del record["status"]

        assert list(record) == ["title"]
        assert "status" not in record
        assert dict(record.items()) == {"title": "x"}
        with pytest.raises(KeyError):
            del record["status"]

    def test_has_and_extract(self) -> None:
        record = Record({"id": 1, "title": None}, clean=True)
        record.set("status", "draft")

        assert record.has("id")
        assert not record.has(["id", "title"])
        assert record.extract(["id", "status"]) == {"id": 1, "status": "draft"}
        assert record.extract(["id", "status"], only_dirty=True) == {"status": "draft"}

    def test_set_new_marks_fields_dirty(self) -> None:
        record = Record({"id": 1}, new=False, clean=True)
        record.set_new(True)

        assert record.dirty_fields == ["id"]

    def test_set_dirty(self) -> None:
        record = Record({"id": 1}, clean=True)
        record.set_dirty("id")
        assert record.is_dirty("id")

        record.set_dirty("id", False)
        assert not record.is_dirty()


@pytest.mark.unit
class TestAccessibility:
    """Test mass assignment guards."""

    def test_guard_skips_inaccessible_fields(self) -> None:
        record = Guarded({"id": 5, "title": "x"}, guard=True)

        assert record.to_dict() == {"title": "x"}

    def test_guard_disabled(self) -> None:
        record = Guarded({"id": 5, "title": "x"})

        assert record["id"] == 5

    def test_set_access(self) -> None:
        record = Record()
        record.set_access("*", False).set_access("title", True)

        assert record.is_accessible("title")
        assert not record.is_accessible("id")


@pytest.mark.unit
class TestErrors:
    """Test validation error bookkeeping."""

    def test_errors(self) -> None:
        record = Record()
        record.set_error("title", "required")
        record.set_errors({"title": ["too short"], "status": "invalid"})

        assert record.has_errors()
        assert record.get_error("title") == ["required", "too short"]
        assert record.get_errors() == {
            "title": ["required", "too short"],
            "status": ["invalid"],
        }

    def test_clean_clears_errors(self) -> None:
        record = Record({"title": "x"})
        record.set_error("title", "invalid")
        record.clean()

        assert not record.has_errors()
        assert not record.is_dirty()
