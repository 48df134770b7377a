"""
Thread-safe state management for the logistics KPI API.

Holds the reference data (facility registry, resolver, vessel directory)
loaded once at startup, and the currently loaded record batch. Only the
batch reference is ever swapped; readers take a snapshot and compute
against it without holding the lock.
"""
import threading
import logging
import uuid
from typing import Optional, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime, timezone

from src.logistics.facilities import FacilityRegistry, get_facility_registry
from src.logistics.location_resolver import LocationResolver, get_location_resolver
from src.logistics.records import RecordBatch
from src.logistics.vessels import VesselDirectory, get_vessel_directory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoadedBatch:
    """An immutable record batch plus its identity for cache keying."""
    batch: RecordBatch
    batch_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    loaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> Dict[str, Any]:
        return {
            "batch_id": self.batch_id,
            "loaded_at": self.loaded_at.isoformat(),
            "counts": self.batch.counts(),
            "total_records": self.batch.total_records,
            "source": dict(self.batch.source),
        }


class ApplicationState:
    """
    Singleton application state manager.

    Use get_app_state() to access the singleton instance.
    """

    _instance: Optional['ApplicationState'] = None
    _lock: threading.Lock = threading.Lock()

    def __new__(cls):
        """Ensure singleton pattern."""
        if cls._instance is None:
            with cls._lock:
                # Double-check locking
                if cls._instance is None:
                    cls._instance = super().__new__(cls)
                    cls._instance._initialized = False
        return cls._instance

    def __init__(self):
        """Initialize application state (only once)."""
        if self._initialized:
            return

        self._initialized = True
        self._batch_lock = threading.Lock()
        self._loaded: Optional[LoadedBatch] = None
        self._registry: Optional[FacilityRegistry] = None
        self._resolver: Optional[LocationResolver] = None
        self._vessels: Optional[VesselDirectory] = None
        self._startup_time = datetime.now(timezone.utc)

        logger.info("Application state initialized")

    def load_reference_data(self, registry_path: Optional[str] = None) -> FacilityRegistry:
        """Load the facility registry and vessel directory (idempotent)."""
        if self._registry is None:
            self._registry = get_facility_registry(registry_path)
            self._resolver = get_location_resolver(self._registry)
            self._vessels = get_vessel_directory()
        return self._registry

    @property
    def registry(self) -> FacilityRegistry:
        return self._registry or self.load_reference_data()

    @property
    def resolver(self) -> LocationResolver:
        if self._resolver is None:
            self.load_reference_data()
        return self._resolver

    @property
    def vessels(self) -> VesselDirectory:
        if self._vessels is None:
            self.load_reference_data()
        return self._vessels

    @property
    def registry_loaded(self) -> bool:
        return self._registry is not None

    def replace_batch(self, batch: RecordBatch) -> LoadedBatch:
        """Swap in a new batch wholesale; returns the new handle."""
        loaded = LoadedBatch(batch=batch)
        with self._batch_lock:
            previous = self._loaded
            self._loaded = loaded
        logger.info(
            f"Batch {loaded.batch_id} loaded ({batch.total_records} records)"
            + (f", replacing {previous.batch_id}" if previous else "")
        )
        return loaded

    def clear_batch(self) -> Optional[LoadedBatch]:
        with self._batch_lock:
            previous, self._loaded = self._loaded, None
        if previous:
            logger.info(f"Batch {previous.batch_id} cleared")
        return previous

    def get_batch(self) -> Optional[LoadedBatch]:
        """Snapshot of the current batch handle (may be None)."""
        with self._batch_lock:
            return self._loaded

    @property
    def uptime_seconds(self) -> float:
        """Get application uptime in seconds."""
        return (datetime.now(timezone.utc) - self._startup_time).total_seconds()

    def health_check(self) -> Dict[str, Any]:
        loaded = self.get_batch()
        return {
            'facility_registry': 'healthy' if self.registry_loaded else 'not_initialized',
            'batch': loaded.batch_id if loaded else None,
            'uptime_seconds': self.uptime_seconds,
        }


def get_app_state() -> ApplicationState:
    """
    Get the application state singleton.

    Returns:
        ApplicationState: The singleton application state instance
    """
    return ApplicationState()
