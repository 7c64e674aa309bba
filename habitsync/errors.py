from __future__ import annotations
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .services.rollover_service import ReconciliationReport


class HabitSyncError(Exception):
    """Base class for every failure surfaced by the sync engine."""


class InvalidInput(HabitSyncError, ValueError):
    """Rejected before any remote call (empty title, malformed id, ...)."""


class RemoteUnavailable(HabitSyncError):
    """The remote store could not be reached or refused the operation."""


class SessionLost(HabitSyncError):
    """No owner identity can be resolved, or it changed mid-operation."""


class PartialReconciliationFailure(HabitSyncError):
    """
    One or more writes of a reconciliation run failed.
    The report describes what was written and whether the anchor moved.
    """

    def __init__(self, report: "ReconciliationReport"):
        self.report = report
        super().__init__(
            f"Reconciliation for owner {report.owner_id} finished with "
            f"{len(report.failures)} failed write(s): {'; '.join(report.failures)}"
        )
