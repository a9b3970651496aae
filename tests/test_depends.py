"""Tests for the dependency wrapper."""

import pytest

from webrepo.depends import depends


class SampleService:
    def __init__(self, name: str = "sample") -> None:
        self.name = name


@pytest.mark.unit
class TestDepends:
    """Test registration and lookup of shared instances."""

    def test_set_and_get(self) -> None:
        service = SampleService(name="registered")

        assert depends.set(SampleService, service) is service
        assert depends.get_sync(SampleService) is service

    def test_get_creates_missing_instances(self) -> None:
        class Collaborator:
            pass

        instance = depends.get_sync(Collaborator)

        assert isinstance(instance, Collaborator)
        assert depends.get_sync(Collaborator) is instance
