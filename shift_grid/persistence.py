"""
persistence.py — Loading and saving the grid through the schedule service

Pieces:
  AssignmentPersistence   contract of the remote collaborator
  ScheduleApiClient       REST implementation (requests)
  SaveCoordinator         drives load/save for one store on the asyncio loop

Save rules (one event loop, no locks):
  - only one save is in flight; save() while saving returns SAVING and the
    running save picks up the newer edits
  - the payload is a snapshot taken when the save starts; edits made while
    it is in flight stay in the store and trigger a follow-up save
  - a failed save leaves the store untouched, sets FAILED, calls on_error;
    calling save() again is the retry
  - after close() any response is ignored
  - a load that lands while a save is in flight wins: the save response
    does not touch the freshly loaded baseline
  - malformed server rows and rows the store rejects fail the load
    through on_error, like transport errors
"""

import asyncio
import inspect
import logging
from datetime import date
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Tuple

import requests

from shift_grid.config import DEFAULT_TIMEOUT
from shift_grid.errors import PersistenceError, ValidationError
from shift_grid.keys import assignment_key, parse_assignment_key
from shift_grid.store import Assignment, AssignmentMap, AssignmentStore

logger = logging.getLogger(__name__)

DateRange = Tuple[date, date]
Batch = Sequence[Tuple[str, Assignment]]

# 408 / 429 are worth retrying even though they are client errors
RETRYABLE_STATUS = {408, 429}


class AssignmentPersistence(Protocol):
    """Contract of the remote schedule store."""

    def load_assignments(self, patient_id: str, date_range: DateRange) -> AssignmentMap:
        ...

    def save_assignments(self, patient_id: str, batch: Batch) -> None:
        """Persist the batch. Raises PersistenceError on failure."""
        ...


# ---------------------------------------------------------------------------
# REST client
# ---------------------------------------------------------------------------

class ScheduleApiClient:
    """
    Client for the patient schedule endpoints of the backend.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        company_id: str,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        """
        Args:
            base_url: Base URL of the schedule service
            api_key: Bearer token
            company_id: Tenant id sent with every request
            timeout: Per-request timeout (seconds)
        """
        self.base_url = base_url.rstrip("/")
        self.company_id = company_id
        self.timeout = timeout

        self.session = requests.Session()
        self.session.headers.update({
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
        })

    def _schedule_url(self, patient_id: str) -> str:
        return f"{self.base_url}/patients/{patient_id}/schedule"

    def load_assignments(self, patient_id: str, date_range: DateRange) -> AssignmentMap:
        """
        Fetch assignments of a patient between two dates (inclusive).

        Returns:
            {assignment_key: Assignment}
        """
        start, end = date_range
        params = {
            "companyId": self.company_id,
            "startDate": start.isoformat(),
            "endDate": end.isoformat(),
        }
        logger.info(f"Fetching schedule for {patient_id} from {start} to {end}")

        try:
            response = self.session.get(self._schedule_url(patient_id), params=params, timeout=self.timeout)
            response.raise_for_status()
            rows = response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error fetching schedule: {e}")
            raise _to_persistence_error("load", e)

        mapping: AssignmentMap = {}
        try:
            for row in rows:
                key = assignment_key(patient_id, date.fromisoformat(row["date"]), int(row["slot_index"]))
                mapping[key] = Assignment.from_record(row)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.error(f"Malformed schedule response for {patient_id}: {e!r}")
            raise PersistenceError(f"Schedule load returned a malformed row: {e!r}", retryable=False)
        logger.info(f"Retrieved {len(mapping)} assignments")
        return mapping

    def save_assignments(self, patient_id: str, batch: Batch) -> None:
        """Upsert the given assignments for a patient."""
        payload: Dict[str, Any] = {
            "companyId": self.company_id,
            "assignments": [_to_row(key, assignment) for key, assignment in batch],
        }
        logger.info(f"Saving {len(batch)} assignments for {patient_id}")

        try:
            response = self.session.put(self._schedule_url(patient_id), json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            logger.error(f"Error saving schedule: {e}")
            raise _to_persistence_error("save", e)

        logger.info("Schedule saved successfully")


def _to_row(key: str, assignment: Assignment) -> Dict[str, Any]:
    parts = parse_assignment_key(key)
    row = {"date": parts.day.isoformat(), "slot_index": parts.slot_index}
    row.update(assignment.to_record())
    return row


def _to_persistence_error(action: str, error: requests.exceptions.RequestException) -> PersistenceError:
    status = error.response.status_code if error.response is not None else None
    retryable = status is None or status >= 500 or status in RETRYABLE_STATUS
    suffix = f" (HTTP {status})" if status else ""
    return PersistenceError(f"Schedule {action} failed{suffix}: {error}", retryable=retryable)


# ---------------------------------------------------------------------------
# Save coordination
# ---------------------------------------------------------------------------

class SaveState(Enum):
    IDLE = "idle"
    SAVING = "saving"
    SAVED = "saved"
    FAILED = "failed"


class SaveCoordinator:

    def __init__(
        self,
        store: AssignmentStore,
        backend: AssignmentPersistence,
        patient_id: str,
        on_error: Optional[Callable[[PersistenceError], None]] = None,
    ):
        self.store = store
        self.backend = backend
        self.patient_id = patient_id
        self.on_error = on_error
        self.state = SaveState.IDLE
        self.last_error: Optional[PersistenceError] = None
        self._saving = False
        self._closed = False
        self._loads = 0

    @property
    def is_saving(self) -> bool:
        return self._saving

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Tear down: responses that arrive afterwards are dropped."""
        self._closed = True

    async def _call(self, fn: Callable[..., Any], *args: Any) -> Any:
        if inspect.iscoroutinefunction(fn):
            return await fn(*args)
        return await asyncio.to_thread(fn, *args)

    def _fail(self, error: PersistenceError) -> None:
        self.state = SaveState.FAILED
        self.last_error = error
        logger.error(f"Schedule sync failed for {self.patient_id}: {error}")
        if self.on_error is not None:
            self.on_error(error)

    def _payload(self, snapshot: AssignmentMap) -> List[Tuple[str, Assignment]]:
        return [
            (key, assignment) for key, assignment in sorted(snapshot.items())
            if parse_assignment_key(key).patient_id == self.patient_id
        ]

    async def load(self, date_range: DateRange) -> Optional[AssignmentMap]:
        """Fetch from the backend and reset the store. None if failed or closed."""
        try:
            mapping = await self._call(self.backend.load_assignments, self.patient_id, date_range)
        except PersistenceError as e:
            if not self._closed:
                self._fail(e)
            return None
        if self._closed:
            logger.warning(f"Ignoring schedule load for {self.patient_id}: view closed")
            return None
        try:
            self.store.reset(mapping)
        except ValidationError as e:
            self._fail(PersistenceError(f"Loaded schedule rejected: {e}", retryable=False))
            return None
        self._loads += 1
        self.state = SaveState.IDLE
        self.last_error = None
        return mapping

    async def save(self) -> SaveState:
        if self._closed:
            return self.state
        if self._saving:
            logger.debug("Save already in flight; newer edits will follow up")
            return SaveState.SAVING

        self._saving = True
        try:
            while True:
                snapshot = self.store.snapshot()
                revision = self.store.revision
                loads = self._loads
                self.state = SaveState.SAVING
                try:
                    await self._call(self.backend.save_assignments, self.patient_id, self._payload(snapshot))
                except PersistenceError as e:
                    if not self._closed:
                        self._fail(e)
                    return self.state
                if self._closed:
                    logger.warning(f"Ignoring save response for {self.patient_id}: view closed")
                    return self.state

                if self._loads != loads:
                    # a load replaced the map and baseline while this save was in flight
                    logger.info(f"Schedule reloaded during save for {self.patient_id}; keeping loaded baseline")
                    self.state = SaveState.SAVED
                    self.last_error = None
                    return self.state
                self.store.mark_saved(snapshot)
                if self.store.revision == revision:
                    self.store.history.clear()
                    self.state = SaveState.SAVED
                    self.last_error = None
                    return self.state
                logger.info(f"Edits arrived during save for {self.patient_id}; saving again")
        finally:
            self._saving = False
