"""
Core infrastructure for buildstash.

This module provides:
- ServiceContainer: DI container using dependency-injector
- Application bootstrap for initialization
- Protocol definitions for the service interfaces
- Custom exception hierarchy
"""

from .bootstrap import bootstrap, is_initialized, reset
from .container import ServiceContainer, get_container
from .exceptions import (
    BuildstashConfigError,
    BuildstashException,
    BuildstashNetworkError,
    ConfigValidationError,
    FinalizeError,
    PlanningError,
    PublicationCancelledError,
    PublicationError,
    RegistryAPIError,
    RegistryConnectionError,
    RegistryTimeoutError,
    TransferError,
    UploadValidationError,
)

__all__ = [
    "BuildstashConfigError",
    "BuildstashException",
    "BuildstashNetworkError",
    "ConfigValidationError",
    "FinalizeError",
    "PlanningError",
    "PublicationCancelledError",
    "PublicationError",
    "RegistryAPIError",
    "RegistryConnectionError",
    "RegistryTimeoutError",
    "ServiceContainer",
    "TransferError",
    "UploadValidationError",
    "bootstrap",
    "get_container",
    "is_initialized",
    "reset",
]
