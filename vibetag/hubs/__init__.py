# Path: vibetag/hubs/__init__.py
# Purpose: Package initializer for hub image detection.
# Layer: vibetag/hubs.
# Details: Exposes workloads, the detector, the persistence service, and the debounced scheduler.

from .cancellation import CancellationToken
from .detector import HubDetectionResult, HubDetector, HubObservation, evaluate_observation, hub_threshold
from .scheduler import HubDetectionScheduler, JobState, SchedulerState
from .service import HubDetectionService
from .workload import (
    SYNTHETIC_QUERIES,
    BaselineWorkloadSource,
    ExtensionWorkloadSource,
    QueryHistory,
    build_baseline_workload,
    build_extension_workload,
    dedupe_queries,
    normalize_query,
)

__all__ = [
    "BaselineWorkloadSource",
    "CancellationToken",
    "ExtensionWorkloadSource",
    "HubDetectionResult",
    "HubDetectionScheduler",
    "HubDetectionService",
    "HubDetector",
    "HubObservation",
    "JobState",
    "QueryHistory",
    "SYNTHETIC_QUERIES",
    "SchedulerState",
    "build_baseline_workload",
    "build_extension_workload",
    "dedupe_queries",
    "evaluate_observation",
    "hub_threshold",
    "normalize_query",
]
