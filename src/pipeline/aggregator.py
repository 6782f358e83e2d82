"""Synchronous aggregator: run every branch once and collect the answers.

Uses the same planning as the streaming path, then calls ``generate`` on
every branch concurrently.  ``asyncio.gather(return_exceptions=True)``
keeps one branch's crash from discarding the others; a crash is folded
into a ``success=False`` slot.  Results come back in selection order.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import structlog

from src.models.attachment import Attachment
from src.models.generation import (
    AggregateResult,
    BranchResult,
    BranchSelection,
    ProviderResult,
)
from src.services.branch_planner import BranchPlan, BranchPlanner
from src.services.provider_registry import ProviderRegistry

logger = structlog.get_logger(logger_name=__name__)


class SyncAggregator:
    """Fan a prompt out to every branch and wait for all of them."""

    def __init__(self, registry: ProviderRegistry, planner: BranchPlanner) -> None:
        self._registry = registry
        self._planner = planner

    async def generate_all(
        self,
        prompt: str,
        attachments: Sequence[Attachment],
        selections: Sequence[BranchSelection],
        auto_substitute: bool | None = None,
    ) -> AggregateResult:
        """Return one :class:`BranchResult` per selection, in order.

        Raises
        ------
        RequestValidationError
            Before any provider is called, for a malformed request.
        """
        self._planner.validate(prompt, selections)
        plans = self._planner.plan(selections, attachments, auto_substitute=auto_substitute)

        outcomes = await asyncio.gather(
            *(self._run(prompt, plan) for plan in plans),
            return_exceptions=True,
        )

        results = [self._to_branch_result(plan, outcome) for plan, outcome in zip(plans, outcomes)]
        logger.info(
            "aggregate_completed",
            branches=len(results),
            succeeded=sum(1 for r in results if r.success),
        )
        return AggregateResult(branch_results=results)

    async def _run(self, prompt: str, plan: BranchPlan) -> ProviderResult:
        provider = self._registry.require(plan.provider_id)
        return await provider.generate(prompt, plan.model_id, plan.temperature, plan.attachments)

    def _to_branch_result(
        self,
        plan: BranchPlan,
        outcome: ProviderResult | BaseException,
    ) -> BranchResult:
        offered_echo = [a.summary() for a in plan.offered] or None

        if isinstance(outcome, BaseException):
            logger.error(
                "branch_generate_crashed",
                branch=plan.branch_index,
                provider=plan.provider_id,
                error=repr(outcome),
            )
            return BranchResult(
                branch_index=plan.branch_index,
                provider_id=plan.provider_id,
                requested_model=plan.requested_model,
                model_id_used=plan.model_id,
                temperature_used=plan.temperature,
                success=False,
                error_message=str(outcome) or type(outcome).__name__,
                model_changed=plan.model_changed,
                file_warnings=list(plan.file_warnings),
                attached_files=offered_echo,
            )

        return BranchResult(
            branch_index=plan.branch_index,
            provider_id=plan.provider_id,
            requested_model=plan.requested_model,
            model_id_used=outcome.model_id_used,
            temperature_used=outcome.temperature_used,
            success=outcome.success,
            response_text=outcome.response_text,
            error_message=outcome.error_message,
            model_changed=plan.model_changed,
            files_processed=outcome.success and plan.files_processed,
            file_warnings=list(plan.file_warnings),
            attached_files=outcome.attached_files if outcome.success else offered_echo,
        )
