"""
Monitoring package.

Phase classification, activity segment tracking and the per-channel
lifecycle reconciler. Platform adapters live under services/.
"""

from .errors import MonitoringError, ProbeUnavailableError, StoreError
from .models import (
    NO_ACTIVITY,
    ActivitySegment,
    LifecyclePhase,
    MonitoredChannel,
    Subscription,
)

__all__ = [
    "NO_ACTIVITY",
    "ActivitySegment",
    "LifecyclePhase",
    "MonitoredChannel",
    "Subscription",
    "MonitoringError",
    "ProbeUnavailableError",
    "StoreError",
]
