"""Tests for the dynamic finder grammar and finder registry."""

import pytest

from webrepo.repository import (
    FinderRegistry,
    MagicFinderAmbiguous,
    MagicFinderArgumentMismatch,
    MagicFinderError,
    UnknownFinder,
    parse_dynamic_finder,
)
from webrepo.repository.finders import Combinator, DynamicFinder, is_dynamic_finder


@pytest.mark.unit
class TestParseDynamicFinder:
    """Test parsing of find[Type]By<Fields> names."""

    @pytest.mark.parametrize(
        ("method", "expected"),
        [
            ("find_by_name", DynamicFinder("all", ("name",))),
            ("findByName", DynamicFinder("all", ("name",))),
            ("findAllByNameAndStatus", DynamicFinder("all", ("name", "status"))),
            ("find_list_by_email", DynamicFinder("list", ("email",))),
            (
                "find_by_name_or_email",
                DynamicFinder("all", ("name", "email"), Combinator.OR),
            ),
            ("find_by_first_name", DynamicFinder("all", ("first_name",))),
        ],
    )
    def test_parse(self, method, expected) -> None:
        assert parse_dynamic_finder(method) == expected

    def test_mixed_combinators(self) -> None:
        with pytest.raises(MagicFinderAmbiguous):
            parse_dynamic_finder("findByNameAndStatusOrEmail")

    def test_not_a_finder(self) -> None:
        assert not is_dynamic_finder("get_by_name")
        assert is_dynamic_finder("findActiveByName")

        with pytest.raises(MagicFinderError):
            parse_dynamic_finder("get_by_name")


@pytest.mark.unit
class TestBuildConditions:
    """Test argument binding."""

    def test_and_conditions(self) -> None:
        finder = parse_dynamic_finder("find_by_name_and_status")

        assert finder.build_conditions(["a", "active"]) == {"name": "a", "status": "active"}

    def test_or_conditions_with_alias(self) -> None:
        finder = parse_dynamic_finder("find_by_name_or_email")

        conditions = finder.build_conditions(["a", "b"], lambda field: f"users.{field}")

        assert conditions == {"OR": {"users.name": "a", "users.email": "b"}}

    def test_extra_arguments_are_ignored(self) -> None:
        finder = parse_dynamic_finder("find_by_name")

        assert finder.build_conditions(["a", "b"]) == {"name": "a"}

    def test_missing_arguments(self) -> None:
        finder = parse_dynamic_finder("find_by_name_and_status")

        with pytest.raises(MagicFinderArgumentMismatch) as exc_info:
            finder.build_conditions(["a"])

        assert exc_info.value.got == 1
        assert exc_info.value.required == 2


@pytest.mark.unit
class TestFinderRegistry:
    """Test finder registration."""

    def test_names_are_normalized(self) -> None:
        registry = FinderRegistry({"byAuthor": lambda query, options: query})

        assert registry.has("by_author")
        assert "byAuthor" in registry
        assert registry.names() == ["by_author"]
        assert len(registry) == 1

    def test_unknown_finder(self) -> None:
        with pytest.raises(UnknownFinder) as exc_info:
            FinderRegistry().get("missing", "articles")

        assert exc_info.value.finder == "missing"
        assert exc_info.value.entity_type == "articles"
