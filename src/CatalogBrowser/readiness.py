"""Readiness gate for catalog resources.

The lifecycle phase of a catalog lives in an orchestration API that this
package does not talk to directly.  Callers plug in a
:class:`CatalogStatusSource`; the query layer refuses to touch the cache until
the source reports :data:`PHASE_UNPACKED`.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Optional, Protocol, runtime_checkable

from .core import CatalogRef
from .errors import NotReadyError

LOGGER = logging.getLogger(__name__)

PHASE_UNPACKED = "Unpacked"


@runtime_checkable
class CatalogStatusSource(Protocol):
    """Reports the lifecycle phase of a catalog resource."""

    def get_phase(self, ref: CatalogRef) -> Optional[str]:
        """Return the current phase, or ``None`` when unknown."""
        ...


class StaticStatusSource:
    """Status source backed by a fixed mapping of catalog name (or key) to phase."""

    def __init__(self, phases: Mapping[str, str], default: Optional[str] = None) -> None:
        self._phases = dict(phases)
        self._default = default

    def set_phase(self, name: str, phase: str) -> None:
        self._phases[name] = phase

    def get_phase(self, ref: CatalogRef) -> Optional[str]:
        if ref.key in self._phases:
            return self._phases[ref.key]
        return self._phases.get(ref.name, self._default)


class AlwaysReadyStatusSource:
    """Status source that treats every catalog as unpacked."""

    def get_phase(self, ref: CatalogRef) -> Optional[str]:
        return PHASE_UNPACKED


class CallableStatusSource:
    """Adapter wrapping a plain ``ref -> phase`` callable."""

    def __init__(self, func: Callable[[CatalogRef], Optional[str]]) -> None:
        self._func = func

    def get_phase(self, ref: CatalogRef) -> Optional[str]:
        return self._func(ref)


def require_ready(source: CatalogStatusSource, ref: CatalogRef) -> None:
    """Raise :class:`NotReadyError` unless ``ref`` is unpacked."""
    phase = source.get_phase(ref)
    if phase != PHASE_UNPACKED:
        LOGGER.debug("catalog-not-ready catalog=%s phase=%s", ref, phase)
        raise NotReadyError(ref, phase)


__all__ = [
    "PHASE_UNPACKED",
    "CatalogStatusSource",
    "StaticStatusSource",
    "AlwaysReadyStatusSource",
    "CallableStatusSource",
    "require_ready",
]
