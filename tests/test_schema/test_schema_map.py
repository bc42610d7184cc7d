"""
Tests for the schema relationship map.
"""

import json

import pytest

from nabudb.core.errors import SchemaVersionError, UnknownModelError
from nabudb.schema.map import SCHEMA_MAP_VERSION, SchemaMap, SchemaModelEntry


@pytest.fixture
def small_map():
    return SchemaMap.from_entries(
        [
            SchemaModelEntry(
                name="Note",
                scalar_fields={"id": "string", "tenant_id": "string", "status": "note_status"},
                enum_fields={"status": "note_status"},
                relation_fields={"tenant": "Tenant", "note_tags": "NoteTag"},
                relation_to_foreign_key={"tenant": "tenant_id"},
                child_relations=frozenset({"note_tags"}),
            ),
            SchemaModelEntry(name="Tenant", scalar_fields={"id": "string"}),
        ],
        enums={"note_status": ["draft", "published"]},
    )


class TestSchemaModelEntry:
    def test_field_lookups(self, small_map):
        note = small_map.get_model("Note")
        assert note.has_field("tenant_id")
        assert note.has_field("note_tags")
        assert not note.has_field("missing")
        assert note.is_relation("tenant")
        assert not note.is_relation("tenant_id")
        assert note.relation_target("note_tags") == "NoteTag"
        assert note.foreign_key_for("tenant") == "tenant_id"
        assert note.foreign_key_for("note_tags") is None

    def test_entry_is_frozen(self, small_map):
        with pytest.raises(Exception):
            small_map.get_model("Note").name = "Other"


class TestSchemaMap:
    def test_unknown_model_raises(self, small_map):
        with pytest.raises(UnknownModelError) as exc:
            small_map.get_model("Ghost")
        assert exc.value.details["model"] == "Ghost"

    def test_model_listing(self, small_map):
        assert small_map.has_model("Note")
        assert not small_map.has_model("Ghost")
        assert sorted(small_map.list_models()) == ["Note", "Tenant"]

    def test_enum_values(self, small_map):
        assert small_map.get_enum_values("note_status") == ["draft", "published"]
        assert small_map.get_enum_values("missing") == []

    def test_dump_and_load(self, small_map, tmp_path):
        path = small_map.dump(tmp_path / "generated" / "schema_map.json")
        loaded = SchemaMap.load(path)
        assert loaded == small_map
        assert loaded.get_model("Note").child_relations == frozenset({"note_tags"})

    def test_dump_is_stable(self, small_map, tmp_path):
        first = small_map.dump(tmp_path / "a.json").read_text()
        second = small_map.dump(tmp_path / "b.json").read_text()
        assert first == second
        data = json.loads(first)
        assert data["version"] == SCHEMA_MAP_VERSION
        assert data["models"]["Note"]["child_relations"] == ["note_tags"]

    def test_version_mismatch(self, small_map, tmp_path):
        data = small_map.to_dict()
        data["version"] = SCHEMA_MAP_VERSION + 1
        path = tmp_path / "old.json"
        path.write_text(json.dumps(data))
        with pytest.raises(SchemaVersionError):
            SchemaMap.load(path)

    def test_missing_version(self):
        with pytest.raises(SchemaVersionError):
            SchemaMap.from_dict({"models": {}})
