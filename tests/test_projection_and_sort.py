import pytest

from users.constants import ADMIN_FIELDS, BASIC_FIELDS, CUSTOM_ALLOWED_FIELDS, HIDDEN_FIELDS
from users.errors import ValidationError
from users.projection import resolve_projection, split_fields, validate_fields
from users.sorting import parse_sort


class TestProjection:
    def test_basic_excludes_hidden_set(self):
        assert resolve_projection() == {field: 0 for field in HIDDEN_FIELDS}

    def test_admin_only_hides_version(self):
        assert resolve_projection("admin") == {"__v": 0}

    def test_custom_includes_requested_fields(self):
        assert resolve_projection("custom", "name, age") == {"name": 1, "age": 1}

    def test_custom_never_surfaces_hidden_fields(self):
        """emailLower and delete state are whitelisted for admin but still hidden in custom"""
        projection = resolve_projection("custom", "name,emailLower,isDeleted")
        assert projection == {"name": 1}

    def test_custom_with_only_hidden_fields_returns_ids(self):
        assert resolve_projection("custom", "emailLower,deletedAt") == {"_id": 1}

    def test_custom_unknown_fields_fail_whole_request(self):
        with pytest.raises(ValidationError) as exc:
            resolve_projection("custom", "name,password,__v")
        assert exc.value.invalid == ["password", "__v"]
        assert exc.value.allowed == list(CUSTOM_ALLOWED_FIELDS)
        assert "Invalid fields: password, __v" in str(exc.value)

    def test_custom_without_fields_falls_back_to_basic(self):
        assert resolve_projection("custom", " , ") == resolve_projection("basic")

    def test_unknown_mode(self):
        with pytest.raises(ValidationError):
            resolve_projection("everything")

    def test_allowed_set_is_union(self):
        assert set(CUSTOM_ALLOWED_FIELDS) == set(BASIC_FIELDS) | set(ADMIN_FIELDS)
        assert validate_fields(["deleteReason"]) == ["deleteReason"]

    def test_split_fields(self):
        assert split_fields("a, b,,c ") == ["a", "b", "c"]
        assert split_fields(None) == []


class TestSortParser:
    def test_directions(self):
        assert parse_sort("age:1,createdAt:-1") == [("age", 1), ("createdAt", -1)]

    def test_anything_but_one_is_descending(self):
        assert parse_sort("name,age:asc,email:0") == [("name", -1), ("age", -1), ("email", -1)]

    def test_unknown_fields_pass_through(self):
        assert parse_sort("nonexistent:1") == [("nonexistent", 1)]

    def test_blank_spec_uses_default(self):
        assert parse_sort("") == [("createdAt", -1)]
        assert parse_sort(None) == [("createdAt", -1)]
        assert parse_sort(" , ") == [("createdAt", -1)]

    def test_repeated_field_keeps_position(self):
        assert parse_sort("age:1,name:1,age:-1") == [("age", -1), ("name", 1)]
