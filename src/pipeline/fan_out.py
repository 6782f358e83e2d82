"""Fan-out orchestrator: one prompt, N provider branches, one event stream.

``prepare()`` validates and plans synchronously, so a malformed request
fails before any branch starts.  The returned :class:`FanOutRun` launches
every branch as its own asyncio task when :meth:`FanOutRun.events` is
first iterated.  Each task pushes its adapter's events, tagged with the
branch index, onto a shared queue; the run forwards them in arrival order.

Guarantees of :meth:`FanOutRun.events`:

    - within a branch, events keep their adapter order
    - every branch reaches exactly one terminal event (done or error),
      and a failing branch never stops its siblings
    - exactly one ``AllDoneEvent`` closes a run that was not cancelled
    - on cancellation nothing more is forwarded, every branch task is
      cancelled (closing its network stream) and no ``AllDoneEvent`` is sent
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

import structlog

from src.models.attachment import Attachment
from src.models.generation import (
    AllDoneEvent,
    BranchDoneEvent,
    BranchErrorEvent,
    BranchSelection,
    BranchState,
    FileWarningsEvent,
    ModelChangedEvent,
    TokenEvent,
)
from src.pipeline.cancellation import CancellationToken
from src.services.branch_planner import BranchPlan, BranchPlanner
from src.services.provider_registry import ProviderRegistry

logger = structlog.get_logger(logger_name=__name__)


class FanOutRun:
    """One prepared streaming request.  Iterate :meth:`events` once."""

    def __init__(
        self,
        prompt: str,
        plans: list[BranchPlan],
        registry: ProviderRegistry,
        cancel_token: CancellationToken,
        idle_timeout_seconds: float = 0.0,
    ) -> None:
        self._prompt = prompt
        self._plans = plans
        self._registry = registry
        self._token = cancel_token
        self._idle_timeout = idle_timeout_seconds
        self._states: dict[int, BranchState] = {
            plan.branch_index: BranchState.PENDING for plan in plans
        }
        self._started = False

    @property
    def plans(self) -> list[BranchPlan]:
        return list(self._plans)

    @property
    def cancel_token(self) -> CancellationToken:
        return self._token

    @property
    def states(self) -> dict[int, BranchState]:
        return dict(self._states)

    @property
    def is_done(self) -> bool:
        return all(state.is_terminal for state in self._states.values())

    async def events(self) -> AsyncIterator[TokenEvent]:
        if self._started:
            raise RuntimeError("FanOutRun.events() can only be iterated once")
        self._started = True

        queue: asyncio.Queue[TokenEvent] = asyncio.Queue()
        tasks = [
            asyncio.create_task(
                self._run_branch(plan, queue), name=f"branch-{plan.branch_index}"
            )
            for plan in self._plans
        ]
        cancel_waiter = asyncio.create_task(self._token.wait())
        remaining = len(tasks)
        logger.info(
            "fan_out_started",
            stream_id=self._token.stream_id,
            branches=[f"{p.provider_id}:{p.model_id}" for p in self._plans],
        )

        try:
            while remaining:
                getter = asyncio.create_task(queue.get())
                done, _ = await asyncio.wait(
                    {getter, cancel_waiter}, return_when=asyncio.FIRST_COMPLETED
                )
                if getter not in done:
                    getter.cancel()
                    break
                event = getter.result()
                if self._token.cancelled:
                    break
                if event.is_terminal:
                    remaining -= 1
                yield event
        finally:
            cancel_waiter.cancel()
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, cancel_waiter, return_exceptions=True)

        if self._token.cancelled:
            for index, state in self._states.items():
                if not state.is_terminal:
                    self._states[index] = BranchState.CANCELLED
            logger.info(
                "fan_out_cancelled",
                stream_id=self._token.stream_id,
                reason=self._token.reason,
            )
            return

        logger.info(
            "fan_out_completed",
            stream_id=self._token.stream_id,
            states={i: s.value for i, s in self._states.items()},
        )
        yield AllDoneEvent()

    async def _run_branch(self, plan: BranchPlan, queue: asyncio.Queue[TokenEvent]) -> None:
        index = plan.branch_index
        self._states[index] = BranchState.STREAMING
        log = logger.bind(
            stream_id=self._token.stream_id,
            branch=index,
            provider=plan.provider_id,
            model=plan.model_id,
        )

        def emit(event: TokenEvent) -> None:
            queue.put_nowait(event.model_copy(update={"branch_index": index}))

        if plan.model_changed:
            emit(ModelChangedEvent(requested_model=plan.requested_model, model=plan.model_id))
        if plan.file_warnings:
            emit(FileWarningsEvent(warnings=list(plan.file_warnings)))

        provider = self._registry.require(plan.provider_id)
        terminal: TokenEvent | None = None
        log.info("branch_started", attachments=len(plan.attachments))

        try:
            stream = provider.generate_stream(
                self._prompt,
                plan.model_id,
                plan.temperature,
                plan.attachments,
                self._token,
            )
            async with aclosing(stream):
                while True:
                    try:
                        event = await self._next_event(stream)
                    except StopAsyncIteration:
                        break
                    if event.is_terminal:
                        terminal = event
                        break
                    emit(event)
        except asyncio.CancelledError:
            self._states[index] = BranchState.CANCELLED
            log.info("branch_cancelled")
            raise
        except asyncio.TimeoutError:
            log.warning("branch_idle_timeout", timeout=self._idle_timeout)
            terminal = BranchErrorEvent(
                message=(
                    f"Tiempo de espera agotado: {provider.display_name} no respondió "
                    f"en {self._idle_timeout:g} segundos"
                )
            )
        except Exception as exc:  # noqa: BLE001
            # Any adapter failure ends this branch only.
            log.exception("branch_failed_unexpectedly")
            terminal = BranchErrorEvent(message=str(exc) or type(exc).__name__)

        if self._token.cancelled:
            self._states[index] = BranchState.CANCELLED
            log.info("branch_cancelled")
            return

        if terminal is None:
            terminal = BranchDoneEvent()
        if isinstance(terminal, BranchErrorEvent):
            self._states[index] = BranchState.FAILED
            log.warning("branch_failed", error=terminal.message)
        else:
            self._states[index] = BranchState.COMPLETED
            log.info("branch_completed")
        emit(terminal)

    async def _next_event(self, stream: AsyncIterator[TokenEvent]) -> TokenEvent:
        if self._idle_timeout and self._idle_timeout > 0:
            return await asyncio.wait_for(stream.__anext__(), timeout=self._idle_timeout)
        return await stream.__anext__()


class FanOutOrchestrator:
    """Builds :class:`FanOutRun` objects for streaming requests."""

    def __init__(
        self,
        registry: ProviderRegistry,
        planner: BranchPlanner,
        idle_timeout_seconds: float = 0.0,
    ) -> None:
        self._registry = registry
        self._planner = planner
        self._idle_timeout = idle_timeout_seconds

    def prepare(
        self,
        prompt: str,
        selections: Sequence[BranchSelection],
        attachments: Sequence[Attachment] = (),
        cancel_token: CancellationToken | None = None,
        auto_substitute: bool | None = None,
    ) -> FanOutRun:
        """Validate and plan a request.

        Raises
        ------
        RequestValidationError
            Missing prompt, no selections, unknown provider, or a
            temperature outside ``[0, 1]``.
        """
        self._planner.validate(prompt, selections)
        plans = self._planner.plan(selections, attachments, auto_substitute=auto_substitute)
        return FanOutRun(
            prompt=prompt,
            plans=plans,
            registry=self._registry,
            cancel_token=cancel_token or CancellationToken(),
            idle_timeout_seconds=self._idle_timeout,
        )
