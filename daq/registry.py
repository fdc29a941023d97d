"""Counter driver discovery.

Every module in :mod:`daq` (apart from the base class and this file) is
imported once and searched for concrete :class:`~daq.base_counter.BaseCounter`
subclasses. A module that cannot be imported, typically because its vendor
library is not installed, is remembered together with the import error so
the entry point can explain why a driver is missing.

Example::

    from daq.registry import create_driver

    counter = create_driver("Simulated", time_scale=100.0)
"""

from __future__ import annotations

import importlib
import inspect
import logging
import os
import pkgutil
import threading
from dataclasses import dataclass
from types import ModuleType
from typing import Dict, List, Optional, Type

from .base_counter import BaseCounter

logger = logging.getLogger(__name__)

_SKIP_MODULES = frozenset({"base_counter", "registry"})

_lock = threading.Lock()
_drivers: Dict[str, "DriverDescriptor"] = {}
_import_errors: Dict[str, str] = {}
_scanned = False


@dataclass(frozen=True)
class DriverDescriptor:
    """A discovered counter driver class."""

    key: str  # "<module>.<class>"
    name: str  # BaseCounter.device_class_name()
    cls: Type[BaseCounter]
    module: str
    description: Optional[str] = None


def _drivers_in(module: ModuleType) -> List[DriverDescriptor]:
    found = []
    for _, obj in inspect.getmembers(module, inspect.isclass):
        # Skip re-exported classes; they are registered from their own module.
        if obj.__module__ != module.__name__:
            continue
        if not issubclass(obj, BaseCounter) or inspect.isabstract(obj):
            continue
        doc = inspect.getdoc(obj)
        found.append(
            DriverDescriptor(
                key=f"{obj.__module__}.{obj.__name__}",
                name=obj.device_class_name(),
                cls=obj,
                module=obj.__module__,
                description=doc.splitlines()[0] if doc else None,
            )
        )
    return found


def scan_drivers(force: bool = False) -> None:
    """Import the driver modules under :mod:`daq` and index their counters."""
    global _scanned
    with _lock:
        if _scanned and not force:
            return
        _drivers.clear()
        _import_errors.clear()
        package = __name__.rpartition(".")[0]
        for info in pkgutil.iter_modules([os.path.dirname(__file__)]):
            if info.name in _SKIP_MODULES or info.ispkg:
                continue
            qualified = f"{package}.{info.name}"
            try:
                module = importlib.import_module(qualified)
            except Exception as exc:
                logger.debug("Counter driver module %s unavailable: %s", qualified, exc)
                _import_errors[qualified] = str(exc)
                continue
            for descriptor in _drivers_in(module):
                _drivers.setdefault(descriptor.key, descriptor)
        _scanned = True
        logger.debug("Found %d counter drivers", len(_drivers))


def list_drivers() -> List[DriverDescriptor]:
    scan_drivers()
    with _lock:
        return sorted(_drivers.values(), key=lambda d: d.name.lower())


def unavailable_modules() -> Dict[str, str]:
    """Driver modules that failed to import, mapped to the error message."""
    scan_drivers()
    with _lock:
        return dict(_import_errors)


def find_driver(name: str) -> DriverDescriptor:
    """Look a driver up by key or by display name (case-insensitive)."""
    scan_drivers()
    with _lock:
        if name in _drivers:
            return _drivers[name]
        wanted = name.strip().lower()
        for descriptor in _drivers.values():
            if descriptor.name.lower() == wanted:
                return descriptor
    raise KeyError(f"No counter driver registered for {name!r}")


def create_driver(name: str, **kwargs) -> BaseCounter:
    """Instantiate a driver by key or display name, passing ``kwargs`` to its constructor."""
    return find_driver(name).cls(**kwargs)


__all__ = [
    "DriverDescriptor",
    "scan_drivers",
    "list_drivers",
    "find_driver",
    "create_driver",
    "unavailable_modules",
]
