"""
Dependency injection container for buildstash.

Uses dependency-injector for DI with support for:
- Singleton and transient lifetimes
- Interface-based resolution
- An ordered registry of provenance detectors
"""

from collections.abc import Callable
from typing import Optional, TypeVar

from dependency_injector import providers

from .interfaces.detector import IVCSDetector

T = TypeVar("T")


class ServiceContainer:
    """
    Dependency injection container for buildstash.

    Combines dependency-injector providers for core services with a
    detector registry whose insertion order is the detection precedence.
    """

    _instance: Optional["ServiceContainer"] = None

    def __init__(self) -> None:
        self._providers: dict[type, providers.Provider] = {}
        self._detectors: dict[str, type[IVCSDetector]] = {}

    @classmethod
    def get_instance(cls) -> "ServiceContainer":
        """Get the global container instance (singleton)."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset the global container (for testing)."""
        cls._instance = None

    # -------------------------------------------------------------------------
    # Core service registration (uses dependency-injector providers)
    # -------------------------------------------------------------------------

    def register_singleton(
        self,
        interface: type[T],
        implementation: T | None = None,
        factory: Callable[[], T] | None = None,
    ) -> None:
        """
        Register a singleton service.

        Args:
            interface: The interface/protocol type
            implementation: Optional concrete instance
            factory: Optional factory function (for lazy init)
        """
        if implementation is not None:
            self._providers[interface] = providers.Object(implementation)
        elif factory is not None:
            self._providers[interface] = providers.Singleton(factory)
        else:
            raise ValueError("Must provide either implementation or factory")

    def resolve(self, interface: type[T]) -> T:
        """
        Resolve a service by interface.

        Raises:
            KeyError: If no registration found
        """
        if interface not in self._providers:
            raise KeyError(f"No provider registered for: {interface}")
        return self._providers[interface]()

    def try_resolve(self, interface: type[T]) -> T | None:
        """Try to resolve a service, returning None if not registered."""
        if interface not in self._providers:
            return None
        return self._providers[interface]()

    # -------------------------------------------------------------------------
    # Detector registry
    # -------------------------------------------------------------------------

    def register_detector(
        self,
        name: str,
        detector_class: type[IVCSDetector],
    ) -> None:
        """
        Register a provenance detector.

        Detectors are consulted in registration order; re-registering a
        name replaces the class but keeps its position.

        Args:
            name: Detector name (e.g., 'scm', 'git-env')
            detector_class: Class implementing IVCSDetector
        """
        self._detectors[name] = detector_class

    def get_detectors(self) -> list[IVCSDetector]:
        """Instances of all registered detectors, highest precedence first."""
        return [cls() for cls in self._detectors.values()]

    def list_detectors(self) -> list[str]:
        """List registered detector names in precedence order."""
        return list(self._detectors.keys())


def get_container() -> ServiceContainer:
    """Get the global service container instance."""
    return ServiceContainer.get_instance()

