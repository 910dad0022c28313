"""Typed failures raised at the sensor and persistence boundaries.

Classification and aggregation never raise; only sensor setup and storage I/O
do, and each failure carries exactly one human-readable message.
"""

from __future__ import annotations


class WorkoutMonitorError(Exception):
    """Base class for every failure surfaced to the presentation layer."""

    status_code: int = 500

    @property
    def message(self) -> str:
        return str(self.args[0]) if self.args else self.__class__.__name__


class UnavailableError(WorkoutMonitorError):
    """No usable sensor channel on this device."""

    status_code = 503


class PermissionDenied(WorkoutMonitorError):
    """Required sensor permission has not been granted."""

    status_code = 403


class PreconditionFailed(WorkoutMonitorError):
    """A start precondition (e.g. battery level) is not met; state is unchanged."""

    status_code = 409


class PersistenceError(WorkoutMonitorError):
    """The durable store could not be read or written."""

    status_code = 500
