from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from ..domain.errors import RunFailed, RunTimedOut, ThreadBusy
from ..observability.metrics import ASSISTANT_RUNS, RUN_WAIT
from .assistant_gateway import AssistantGateway, Run


LOG = logging.getLogger("plancoach.assistant")


class RunPoller:
    """Turns an asynchronous assistant run into a blocking completion.

    Polls at a fixed interval until the run is terminal. Bounded by both an
    attempt cap and a wall-clock deadline; exceeding either raises
    ``RunTimedOut`` instead of hanging the request.
    """

    def __init__(
        self,
        gateway: AssistantGateway,
        *,
        interval: float = 1.0,
        max_attempts: int = 120,
        deadline: Optional[float] = 120.0,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._gateway = gateway
        self.interval = max(0.0, interval)
        self.max_attempts = max(1, max_attempts)
        self.deadline = deadline
        self._sleep = sleep
        self._clock = clock

    def wait(self, thread_id: str, run_id: str, purpose: str = "conversation") -> Run:
        started = self._clock()
        attempts = 0
        while True:
            run = self._gateway.get_run(thread_id, run_id)
            attempts += 1
            if run.is_terminal:
                break
            elapsed = self._clock() - started
            if attempts >= self.max_attempts or (self.deadline is not None and elapsed >= self.deadline):
                ASSISTANT_RUNS.labels(purpose=purpose, status="timed_out").inc()
                LOG.warning(
                    "assistant_run_timed_out",
                    extra={"thread_id": thread_id, "run_id": run_id, "attempts": attempts, "status": run.status},
                )
                raise RunTimedOut(
                    f"Run {run_id} still {run.status} after {attempts} checks",
                    run_id=run_id,
                    status=run.status,
                )
            self._sleep(self.interval)

        RUN_WAIT.labels(purpose=purpose).observe(self._clock() - started)
        ASSISTANT_RUNS.labels(purpose=purpose, status=run.status).inc()
        if run.status != "completed":
            LOG.warning(
                "assistant_run_failed",
                extra={"thread_id": thread_id, "run_id": run_id, "status": run.status, "err": run.last_error},
            )
            raise RunFailed(
                run.last_error or f"Run {run_id} ended with status {run.status}",
                run_id=run_id,
                status=run.status,
            )
        return run

    def await_idle(self, thread_id: str) -> None:
        """Block until no run on the thread is active.

        The service rejects new messages while a run is active on the thread.
        A prior run that fails is fine here; one that never settles is not.
        """
        for run in self._gateway.list_runs(thread_id):
            if run.is_terminal:
                continue
            LOG.info("assistant_waiting_for_active_run", extra={"thread_id": thread_id, "run_id": run.id})
            try:
                self.wait(thread_id, run.id, purpose="prior")
            except RunTimedOut as exc:
                raise ThreadBusy(f"Thread {thread_id} still has an active run") from exc
            except RunFailed:
                continue
