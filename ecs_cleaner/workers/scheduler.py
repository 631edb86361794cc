"""Bounded-concurrency deregistration of task definitions.

One dispatcher coroutine owns a LIFO stack of jobs and the throttling backoff;
a fixed pool of worker coroutines performs the API calls. They talk only
through two bounded queues and a one-shot quit event:

    dispatcher --jobs queue--> workers --outcomes queue--> dispatcher

Failed deregistrations are classified by the dispatcher:

- throttling: sleep per the shared backoff, then push the job back on the stack
- credential expiry: refresh the provider session, push the job back; calls
  that failed on a session that was already replaced are just pushed back
- fatal: broadcast quit, stop, and re-raise the error as the run's error
- anything else: recorded as a permanent failure; the run goes on

Re-pushed jobs sit on top of the stack, so a retried job is dispatched again
before older pending ones.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

import structlog

from ecs_cleaner.core.errors import ErrorClass, classify_error, get_error_code, get_error_message
from ecs_cleaner.providers.base import ECSProviderBase
from ecs_cleaner.schemas.report import FailureRecord, RetirementResult
from ecs_cleaner.services.collector import ProgressCallback
from ecs_cleaner.workers.backoff import Backoff

logger = structlog.get_logger()


@dataclass(frozen=True)
class RetirementJob:
    """One task definition to deregister."""

    arn: str


@dataclass(frozen=True)
class JobOutcome:
    """Result of one deregistration attempt. ``error`` is None on success."""

    arn: str
    error: BaseException | None = None
    session_generation: int = 0


class RetirementScheduler:
    """Deregisters task definitions with a worker pool, retries and backoff."""

    def __init__(
        self,
        provider: ECSProviderBase,
        parallel: int,
        backoff: Backoff | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        """
        Initialize retirement scheduler.

        Args:
            provider: ECS provider with an open session
            parallel: Worker count (clamped to the number of jobs per run)
            backoff: Throttling backoff policy (defaults from settings)
            sleep: Coroutine used for backoff delays
            on_progress: Called with ("deregistered", successes so far) and
                ("deregister failed", permanent failures so far)
        """
        if parallel < 1:
            raise ValueError(f"parallel must be at least 1, got {parallel}")

        self.provider = provider
        self.parallel = parallel
        self.backoff = backoff or Backoff()
        self.sleep = sleep
        self.on_progress = on_progress

    async def deregister_task_definitions(self, arns: list[str]) -> RetirementResult:
        """
        Deregister every ARN in ``arns``.

        Returns:
            Success and failure tallies

        Raises:
            Exception: The first fatal error, after all workers have stopped
        """
        result = RetirementResult(total_jobs=len(arns))
        if not arns:
            return result

        parallel = min(self.parallel, len(arns))
        jobs: asyncio.Queue[RetirementJob | None] = asyncio.Queue(maxsize=parallel)
        outcomes: asyncio.Queue[JobOutcome] = asyncio.Queue(maxsize=parallel)
        quit_event = asyncio.Event()

        logger.info("scheduler.start", total_jobs=len(arns), workers=parallel)

        workers = [
            asyncio.create_task(self._worker(worker_id, jobs, outcomes, quit_event))
            for worker_id in range(parallel)
        ]
        dispatcher = asyncio.create_task(
            self._dispatch(arns, parallel, jobs, outcomes, quit_event, result)
        )

        try:
            fatal_error = await dispatcher
        except BaseException:
            # dispatcher crashed or the run was cancelled
            quit_event.set()
            for worker in workers:
                worker.cancel()
            await asyncio.gather(*workers, return_exceptions=True)
            raise

        if fatal_error is not None:
            self._drain(jobs)
        for _ in workers:
            jobs.put_nowait(None)
        await asyncio.gather(*workers)

        if fatal_error is not None:
            logger.error(
                "scheduler.aborted",
                succeeded=result.succeeded,
                failed=result.failed,
                error=str(fatal_error),
            )
            raise fatal_error

        logger.info(
            "scheduler.complete",
            succeeded=result.succeeded,
            failed=result.failed,
            throttled=result.throttled,
            session_refreshes=result.session_refreshes,
        )
        return result

    async def _dispatch(
        self,
        arns: list[str],
        parallel: int,
        jobs: "asyncio.Queue[RetirementJob | None]",
        outcomes: "asyncio.Queue[JobOutcome]",
        quit_event: asyncio.Event,
        result: RetirementResult,
    ) -> BaseException | None:
        """
        Feed jobs to the workers and react to their outcomes.

        Returns:
            The fatal error that stopped the run, or None when every job completed
        """
        stack = [RetirementJob(arn) for arn in arns]

        # one slot is held back; at most parallel - 1 jobs are ever outstanding
        preload = min(max(1, parallel - 1), len(stack))
        for _ in range(preload):
            await jobs.put(stack.pop())

        while result.succeeded + result.failed < result.total_jobs:
            outcome = await outcomes.get()

            if outcome.error is None:
                self.backoff.reset()
                result.succeeded += 1
                logger.debug("scheduler.deregistered", arn=outcome.arn)
                if self.on_progress is not None:
                    self.on_progress("deregistered", result.succeeded)
            else:
                error_class = classify_error(outcome.error)

                if error_class is ErrorClass.THROTTLING:
                    delay = self.backoff.duration()
                    result.throttled += 1
                    logger.debug(
                        "scheduler.backoff",
                        arn=outcome.arn,
                        delay_seconds=round(delay, 3),
                        error_code=get_error_code(outcome.error),
                    )
                    await self.sleep(delay)
                    stack.append(RetirementJob(outcome.arn))

                elif error_class is ErrorClass.CREDENTIAL_EXPIRY:
                    if outcome.session_generation < self.provider.session_generation:
                        # session already replaced since this call started
                        logger.debug("scheduler.stale_session_retry", arn=outcome.arn)
                    else:
                        logger.warning("scheduler.credentials_expired", arn=outcome.arn)
                        try:
                            await self.provider.refresh_session()
                        except Exception as e:
                            logger.error("scheduler.session_refresh_failed", error=str(e))
                            quit_event.set()
                            return e
                        result.session_refreshes += 1
                    stack.append(RetirementJob(outcome.arn))

                elif error_class is ErrorClass.FATAL:
                    logger.error(
                        "scheduler.fatal_error",
                        arn=outcome.arn,
                        error_type=type(outcome.error).__name__,
                        error=str(outcome.error),
                    )
                    quit_event.set()
                    return outcome.error

                else:
                    record = FailureRecord(
                        arn=outcome.arn,
                        error=outcome.error,
                        error_code=get_error_code(outcome.error),
                        error_message=get_error_message(outcome.error),
                    )
                    result.failures.append(record)
                    logger.warning(
                        "scheduler.deregister_failed",
                        arn=record.arn,
                        error_code=record.error_code,
                        error=record.error_message,
                    )
                    if self.on_progress is not None:
                        self.on_progress("deregister failed", result.failed)

            if stack:
                await jobs.put(stack.pop())

        return None

    async def _worker(
        self,
        worker_id: int,
        jobs: "asyncio.Queue[RetirementJob | None]",
        outcomes: "asyncio.Queue[JobOutcome]",
        quit_event: asyncio.Event,
    ) -> None:
        """Deregister one job at a time until the jobs run out or quit is broadcast."""
        while True:
            job = await jobs.get()
            if job is None or quit_event.is_set():
                break

            generation = self.provider.session_generation
            try:
                await self.provider.deregister_task_definition(job.arn)
            except Exception as e:
                await outcomes.put(JobOutcome(job.arn, e, generation))
            else:
                await outcomes.put(JobOutcome(job.arn, session_generation=generation))

        logger.debug("scheduler.worker_exit", worker=worker_id)

    @staticmethod
    def _drain(jobs: "asyncio.Queue[RetirementJob | None]") -> None:
        """Discard jobs that were queued but not picked up before an abort."""
        while True:
            try:
                jobs.get_nowait()
            except asyncio.QueueEmpty:
                return
