# Path: vibetag/hubs/scheduler.py
# Purpose: Debounce and coalesce hub detection triggers so the expensive scan runs rarely.
# Layer: vibetag/hubs.
# Details: A pure state machine decides when to run; an actor thread feeds it messages and runs the job.

from __future__ import annotations

import enum
import logging
import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, FrozenSet, Iterable, Optional, Union

from config.settings import SchedulerSettings
from vibetag.errors import OperationCancelled
from vibetag.models.domain import HubDetectionRequest
from .cancellation import CancellationToken

logger = logging.getLogger(__name__)

Job = Callable[[HubDetectionRequest, CancellationToken], object]
Clock = Callable[[], float]


class JobState(enum.Enum):
    IDLE = "idle"
    SCHEDULED = "scheduled"
    RUNNING = "running"


class SchedulerState:
    """Single job slot: ``IDLE -> SCHEDULED -> RUNNING -> IDLE``.

    - A normal trigger (re)starts the debounce timer.
    - A forced trigger fires at once, except that full scans never start
      within ``min_interval_seconds`` of the previous full scan; such a
      request fires exactly when that window reopens.
    - A trigger while running sets ``pending``; one more run follows right
      after the current one finishes. Requests arriving meanwhile coalesce.

    Times are plain floats supplied by the caller.
    """

    def __init__(self, settings: SchedulerSettings) -> None:
        self.settings = settings
        self.state = JobState.IDLE
        self.deadline: Optional[float] = None
        self.pending = False
        self.runs_started = 0
        self._request: Optional[HubDetectionRequest] = None
        self._forced = False
        self._last_full_start: Optional[float] = None

    @property
    def request(self) -> Optional[HubDetectionRequest]:
        """The request the next run will execute."""

        return self._request

    def on_trigger(self, now: float, request: HubDetectionRequest, force: bool = False) -> None:
        self._request = request if self._request is None else self._request.merge(request)

        if self.state is JobState.RUNNING:
            self.pending = True
            return

        if force:
            self._forced = True
            target = now
        elif self._forced and self.deadline is not None:
            target = self.deadline
        else:
            target = now + self.settings.debounce_seconds

        if self._request.is_full_scan:
            target = max(target, self._full_scan_window_opens())

        self.deadline = target
        self.state = JobState.SCHEDULED

    def due(self, now: float) -> bool:
        return self.state is JobState.SCHEDULED and self.deadline is not None and now >= self.deadline

    def seconds_until_deadline(self, now: float) -> Optional[float]:
        if self.state is not JobState.SCHEDULED or self.deadline is None:
            return None
        return max(0.0, self.deadline - now)

    def start_run(self, now: float) -> HubDetectionRequest:
        if self.state is not JobState.SCHEDULED or self._request is None:
            raise RuntimeError(f"Cannot start a run from state {self.state.value}")
        request = self._request
        if request.is_full_scan:
            self._last_full_start = now
        self._request = None
        self._forced = False
        self.deadline = None
        self.pending = False
        self.state = JobState.RUNNING
        self.runs_started += 1
        return request

    def finish_run(self, now: float) -> None:
        if self.state is not JobState.RUNNING:
            raise RuntimeError(f"Cannot finish a run from state {self.state.value}")
        if self.pending and self._request is not None:
            self.pending = False
            self.deadline = now
            self.state = JobState.SCHEDULED
        else:
            self.pending = False
            self.state = JobState.IDLE

    def cancel(self) -> bool:
        """Drop the scheduled run, or any rerun owed after the current one.

        Returns False if nothing was scheduled or running. Stopping the run in
        progress is up to the caller (see :class:`CancellationToken`).
        """

        if self.state is JobState.IDLE:
            return False
        if self.state is JobState.SCHEDULED:
            self.state = JobState.IDLE
        self.pending = False
        self.deadline = None
        self._request = None
        self._forced = False
        return True

    def _full_scan_window_opens(self) -> float:
        if self._last_full_start is None:
            return float("-inf")
        return self._last_full_start + self.settings.min_interval_seconds


@dataclass(frozen=True)
class _Trigger:
    request: HubDetectionRequest
    force: bool


@dataclass(frozen=True)
class _RunFinished:
    pass


@dataclass(frozen=True)
class _Cancel:
    pass


@dataclass(frozen=True)
class _Stop:
    pass


_Message = Union[_Trigger, _RunFinished, _Cancel, _Stop]


class HubDetectionScheduler:
    """Actor owning a :class:`SchedulerState`.

    Callers only post messages; one background thread applies them in order
    and starts the job on a single-worker executor, so at most one run is in
    flight per scheduler. Running more than one process needs an external
    lock around the job.

    The job is called as ``job(request, token)``; :meth:`cancel` and
    :meth:`stop` cancel the token of the run in progress.
    """

    def __init__(self, job: Job, settings: Optional[SchedulerSettings] = None, clock: Clock = time.monotonic) -> None:
        self._job = job
        self._clock = clock
        self._state = SchedulerState(settings or SchedulerSettings())
        self._messages: "queue.Queue[_Message]" = queue.Queue()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._thread: Optional[threading.Thread] = None
        self._idle = threading.Event()
        self._idle.set()
        self._idle_lock = threading.Lock()
        self.runs_completed = 0
        self.runs_failed = 0
        self.runs_cancelled = 0
        self._token: Optional[CancellationToken] = None

    @property
    def state(self) -> JobState:
        return self._state.state

    def start(self) -> None:
        if self._thread is not None:
            return
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="hub-job")
        self._thread = threading.Thread(target=self._loop, name="hub-scheduler", daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the actor, cancelling any scheduled or running job first."""

        if self._thread is None:
            return
        self._post(_Cancel())
        self._post(_Stop())
        self._thread.join(timeout)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
        self._thread = None
        self._executor = None

    def trigger(self, image_ids: Optional[Iterable[str]] = None, force: bool = False) -> None:
        """Request a run: incremental for ``image_ids``, otherwise a full scan."""

        ids: Optional[FrozenSet[str]] = None if image_ids is None else frozenset(image_ids)
        if ids is not None and not ids:
            return
        self._post(_Trigger(HubDetectionRequest(image_ids=ids), force))

    def cancel(self) -> None:
        """Drop a scheduled run and signal the running one, if any, to stop."""

        self._post(_Cancel())

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is scheduled or running."""

        return self._idle.wait(timeout)

    def _post(self, message: _Message) -> None:
        with self._idle_lock:
            self._idle.clear()
            self._messages.put(message)

    def _loop(self) -> None:
        while True:
            wait = self._state.seconds_until_deadline(self._clock())
            try:
                message: Optional[_Message] = self._messages.get(timeout=wait)
            except queue.Empty:
                message = None

            if isinstance(message, _Stop):
                break
            if message is not None:
                self._handle(message)

            now = self._clock()
            if self._state.due(now):
                request = self._state.start_run(now)
                if self._executor is None:
                    raise RuntimeError("HubDetectionScheduler used before start().")
                self._token = CancellationToken()
                self._executor.submit(self._run, request, self._token)

            with self._idle_lock:
                if self._state.state is JobState.IDLE and self._messages.empty():
                    self._idle.set()

    def _handle(self, message: _Message) -> None:
        now = self._clock()
        if isinstance(message, _Trigger):
            was_running = self._state.state is JobState.RUNNING
            self._state.on_trigger(now, message.request, force=message.force)
            if was_running:
                logger.info("Hub detection already running, will run again after completion")
            else:
                logger.info(f"Hub detection scheduled in {self._state.seconds_until_deadline(now):.0f}s")
        elif isinstance(message, _RunFinished):
            self._token = None
            self._state.finish_run(now)
            if self._state.state is JobState.SCHEDULED:
                logger.info("Running pending hub detection")
        elif isinstance(message, _Cancel):
            running = self._state.state is JobState.RUNNING
            if not self._state.cancel():
                return
            if running and self._token is not None:
                self._token.cancel()
                logger.info("Cancelling running hub detection")
            else:
                logger.info("Cancelled pending hub detection")

    def _run(self, request: HubDetectionRequest, token: CancellationToken) -> None:
        scope = "full scan" if request.is_full_scan else f"{len(request.image_ids or ())} image(s)"
        try:
            logger.info(f"Starting hub detection ({scope})")
            self._job(request, token)
            self.runs_completed += 1
            logger.info(f"Hub detection completed ({scope})")
        except OperationCancelled:
            self.runs_cancelled += 1
            logger.warning(f"Hub detection cancelled ({scope})")
        except Exception:  # noqa: BLE001
            self.runs_failed += 1
            logger.exception(f"Hub detection failed ({scope})")
        finally:
            self._post(_RunFinished())
