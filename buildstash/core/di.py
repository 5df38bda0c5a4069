"""
Dependency injection helpers for buildstash.

Provides lazy resolution with a fallback to default implementations, so
services work the same whether or not the container was bootstrapped.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, TypeVar

if TYPE_CHECKING:
    from collections.abc import Callable

T = TypeVar("T")


def resolve_or_default(
    interface: type[T],
    default_factory: Callable[[], T],
) -> T:
    """Resolve a service from the container or create a default.

    Args:
        interface: The interface/protocol type to resolve
        default_factory: Callable that creates the default implementation

    Returns:
        Resolved service instance or default

    Example:
        >>> from buildstash.core.interfaces.logger import ILogger
        >>> from buildstash.services.logging import NullLogger
        >>> logger = resolve_or_default(ILogger, NullLogger)
    """
    try:
        from .container import get_container

        instance = get_container().try_resolve(interface)
        if instance is not None:
            return instance
    except Exception:
        # Container not bootstrapped or the provider failed to build
        pass

    return default_factory()

