import typing as t
from bevy import get_container
from contextlib import suppress


class Depends:
    """Dependency lookup for webrepo.

    Thin wrapper around the bevy container used to share settings and
    default collaborators between endpoints.
    """

    @staticmethod
    def set(class_: t.Any, instance: t.Any = None) -> t.Any:
        """Register a class/instance in the dependency container.

        Returns the instance that was registered.
        """
        if instance is None:
            instance = class_()
        get_container().add(class_, instance)
        return instance

    @staticmethod
    def get_sync(category: type[t.Any]) -> t.Any:
        """Get a dependency instance, creating and registering it when missing.

        Args:
            category: The dependency class to retrieve

        Returns:
            The dependency instance
        """
        with suppress(Exception):
            result = get_container().get(category)
            if isinstance(result, tuple) and len(result) == 1:
                result = result[0]
            if isinstance(result, category):
                return result
        return Depends.set(category)


depends = Depends()

__all__ = ["Depends", "depends", "get_container"]
