"""
Application bootstrap for buildstash.

Initializes the DI container with core services and provenance detectors.
This module should be called once at application startup.
"""

from .container import ServiceContainer, get_container
from .interfaces.logger import ILogger
from .interfaces.presenter import IPresenter

_initialized = False


def bootstrap() -> ServiceContainer:
    """
    Bootstrap the buildstash application.

    Registers the presenter, the configured logger and the built-in
    provenance detectors in precedence order.

    Returns:
        Initialized ServiceContainer
    """
    global _initialized

    container = get_container()

    if _initialized:
        return container

    _register_core_services(container)
    _register_detectors(container)

    _initialized = True
    return container


def _register_core_services(container: ServiceContainer) -> None:
    """Register core application services."""
    from ..config import config_get
    from ..presenters.console import ConsolePresenter
    from ..services.logging import BuildstashLogger

    container.register_singleton(IPresenter, implementation=ConsolePresenter())  # type: ignore[type-abstract]

    def create_logger() -> ILogger:
        level = config_get("logging.level") or "warning"
        console_enabled = config_get("logging.console") or False
        file_enabled = config_get("logging.file")
        if file_enabled is None:
            file_enabled = True
        return BuildstashLogger(
            level=level,
            console_enabled=console_enabled,
            file_enabled=file_enabled,
        )

    container.register_singleton(ILogger, factory=create_logger)  # type: ignore[type-abstract]


def _register_detectors(container: ServiceContainer) -> None:
    """Register built-in detectors, highest precedence first."""
    from ..plugins.vcs import BUILTIN_DETECTORS

    for detector_class in BUILTIN_DETECTORS:
        container.register_detector(detector_class.detector_name, detector_class)


def reset() -> None:
    """
    Reset the application state.

    Useful for testing to ensure clean state between tests.
    """
    global _initialized
    ServiceContainer.reset()
    _initialized = False


def is_initialized() -> bool:
    """Check if the application has been bootstrapped."""
    return _initialized
