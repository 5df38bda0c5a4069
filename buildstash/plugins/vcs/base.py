"""
Base provenance detector.

Holds the duck-typed probing helpers shared by detectors that inspect
objects owned by the hosting runtime.
"""

from abc import abstractmethod
from collections.abc import Iterable
from typing import Any, ClassVar

from ...core.interfaces.detector import IVCSDetector
from ...core.models.context import BuildContext
from ...core.models.vcs import VCProvenance, is_blank

# Errors a foreign object may raise while being probed
PROBE_ERRORS = (AttributeError, TypeError, LookupError, ValueError)


def probe(obj: Any, *names: str) -> Any:
    """
    Return the first non-blank attribute among ``names``.

    Callables are invoked without arguments, so both ``obj.url`` and
    ``obj.get_url()`` style objects work when the name matches.

    Returns:
        The attribute value, or None if no name yields a value
    """
    if obj is None:
        return None
    for name in names:
        try:
            value = getattr(obj, name, None)
            if callable(value):
                value = value()
        except PROBE_ERRORS:
            continue
        if not is_blank(value):
            return value
    return None


def first_item(values: Any) -> Any:
    """First element of a list, set, tuple, dict (its first key) or iterable."""
    if values is None:
        return None
    try:
        if isinstance(values, dict):
            return next(iter(values), None)
        if isinstance(values, Iterable) and not isinstance(values, (str, bytes)):
            return next(iter(values), None)
    except PROBE_ERRORS:
        return None
    return None


def class_label(obj: Any) -> str:
    """Fully qualified class name of ``obj`` (``module.ClassName``)."""
    cls = type(obj)
    return f"{cls.__module__}.{cls.__qualname__}"


def as_text(value: Any) -> str | None:
    """Stringify a probed value, treating blanks as absent."""
    if value is None:
        return None
    text = value if isinstance(value, str) else str(value)
    text = text.strip()
    return text or None


class BaseVCSDetector(IVCSDetector):
    """
    Abstract base class for provenance detectors.

    Implements the Strategy pattern: each subclass reads one source and the
    resolver folds their answers in precedence order.
    """

    detector_name: ClassVar[str] = ""

    @property
    def name(self) -> str:
        return self.detector_name

    @abstractmethod
    def attempt(self, context: BuildContext) -> VCProvenance | None:
        """Read provenance from this detector's source."""
        pass
