"""Decorator-based registry for pluggable implementations.

Front-end strategies, rule checkers and renderers are all looked up by
key in a :class:`Registry`.  New implementations register themselves
with a decorator and become available to the analyzer and to the CLI's
``choices`` without touching any dispatch code.

Example usage::

    checker_registry = Registry("checker")

    @checker_registry.register("sensitivity")
    class SensitivityChecker(RuleChecker):
        ...

    checker = checker_registry.create("sensitivity")
    for key, cls in checker_registry.items():
        ...

Iteration order is registration order, which is also the order in which
checkers run.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, List, Tuple, Type, TypeVar

T = TypeVar("T")


class Registry:
    """Map string keys to classes registered through a decorator."""

    def __init__(self, name: str = "registry") -> None:
        """Initialize an empty registry.

        Args:
            name: Human-readable name used in error messages.
        """
        self._name = name
        self._items: Dict[str, Type[Any]] = {}

    def register(self, key: str) -> Callable[[Type[T]], Type[T]]:
        """Return a class decorator registering the class under ``key``.

        Raises:
            ValueError: If ``key`` is already taken.
        """
        def decorator(cls: Type[T]) -> Type[T]:
            if key in self._items:
                raise ValueError(
                    f"{self._name}: key '{key}' already registered "
                    f"to {self._items[key].__name__}"
                )
            self._items[key] = cls
            return cls
        return decorator

    def get(self, key: str) -> Type[Any]:
        """Return the class registered under ``key``.

        Raises:
            KeyError: If ``key`` is not registered; the message lists the
                available keys.
        """
        if key not in self._items:
            available = ", ".join(sorted(self._items))
            raise KeyError(f"{self._name}: unknown key '{key}'. Available: {available}")
        return self._items[key]

    def create(self, key: str, **kwargs: Any) -> Any:
        """Instantiate the class registered under ``key`` with ``kwargs``."""
        return self.get(key)(**kwargs)

    def keys(self) -> List[str]:
        """Registered keys in registration order (for argparse choices)."""
        return list(self._items)

    def items(self) -> List[Tuple[str, Type[Any]]]:
        return list(self._items.items())

    def __contains__(self, key: str) -> bool:
        return key in self._items

    def __len__(self) -> int:
        return len(self._items)
