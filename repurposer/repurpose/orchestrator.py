"""
Repurpose orchestration pipeline.

Runs one repurpose request through:

    VALIDATING -> POLICY_RESOLVED -> QUOTA_CHECKED -> PLATFORMS_RESOLVED
    -> GENERATING -> PERSISTING -> CACHE_INVALIDATED -> DONE

with ERROR reachable from every step. Quota is checked before any AI call.
Usage is consumed only after generation succeeded, in a single atomic
commit that re-checks the limits, so two concurrent requests cannot both
spend the last unit. Once generation has finished, the commit, persistence
and cache steps are shielded from caller cancellation.
"""

import asyncio
import logging
from decimal import Decimal
from typing import List, Optional, Set

from ..content.cache import ContentListCache
from ..content.synchronizer import ContentSynchronizer
from ..exceptions import (
    DatabaseError,
    ErrorCode,
    PersistenceDegraded,
    ResourceNotFoundError,
    StorageNotReadyError,
    SubscriptionRequiredError,
    TierMismatchError,
    ValidationError,
)
from ..storage.schema import SchemaInitializer
from ..text_generation.router import ProviderRouter
from ..types.content import ContentItem
from ..types.repurpose import (
    GenerationRequest,
    GenerationResult,
    RepurposeRequest,
    RepurposeResult,
    RepurposeState,
    UsageSummary,
)
from ..types.usage import Account, AccountSettings, LimitType, TierPolicy, UsageCommit
from ..usage.accounts import AccountRepository
from ..usage.counter_store import UsageCounterStore
from ..usage.gate import QuotaGate, quota_exceeded_error
from ..usage.tiers import TierLike, TierPolicyRegistry, parse_tier, tier_endpoint
from ..utils.logging import Timer, set_request_context
from .platforms import PlatformSelector

logger = logging.getLogger(__name__)

DAILY_COUNT_DEGRADED_WARNING = (
    "Daily usage could not be verified; the daily limit was not enforced for this request."
)
USAGE_NOT_RECORDED_WARNING = (
    "Usage for this request could not be recorded and will be reconciled later."
)


class PipelineRun:
    """State of one request as it moves through the pipeline."""

    def __init__(self, account_id: str):
        self.account_id = account_id
        self.state = RepurposeState.VALIDATING
        self.history: List[RepurposeState] = [RepurposeState.VALIDATING]
        self.warnings: List[str] = []
        # Set once the caller is gone and only the shielded finalize step still runs
        self.detached = False

    def advance(self, state: RepurposeState) -> None:
        self.state = state
        self.history.append(state)
        set_request_context(stage=state.value)
        logger.debug("Repurpose for %s -> %s", self.account_id, state.value)

    def fail(self, exc: BaseException) -> None:
        failed_at = self.state
        self.advance(RepurposeState.ERROR)
        logger.info(
            "Repurpose for %s failed at %s: %s",
            self.account_id,
            failed_at.value,
            type(exc).__name__,
        )

    def finish_detached(self, task: "asyncio.Task[RepurposeResult]") -> None:
        """Done-callback for a finalize step that outlived its caller."""
        if task.cancelled():
            return
        exc = task.exception()
        if exc is None:
            logger.info("Repurpose for %s finished after the caller went away", self.account_id)
            return
        self.fail(exc)
        logger.error(
            "Repurpose for %s failed after the caller went away: %s",
            self.account_id,
            exc,
            exc_info=exc,
        )


class RepurposeOrchestrator:
    """
    Coordinates the usage engine, AI router and content persistence.

    Every collaborator is passed in; the service container builds one
    orchestrator at startup.
    """

    def __init__(
        self,
        registry: TierPolicyRegistry,
        accounts: AccountRepository,
        counters: UsageCounterStore,
        router: ProviderRouter,
        synchronizer: ContentSynchronizer,
        cache: Optional[ContentListCache] = None,
        gate: Optional[QuotaGate] = None,
        selector: Optional[PlatformSelector] = None,
        schema: Optional[SchemaInitializer] = None,
        upgrade_url: str = "/pricing",
    ):
        self.registry = registry
        self.accounts = accounts
        self.counters = counters
        self.router = router
        self.synchronizer = synchronizer
        self.cache = cache
        self.gate = gate or QuotaGate()
        self.selector = selector or PlatformSelector()
        self.schema = schema
        self.upgrade_url = upgrade_url
        # Finalize steps whose caller was cancelled, held until they finish
        self._detached: Set[asyncio.Task] = set()

    async def repurpose(
        self,
        account_id: str,
        request: RepurposeRequest,
        endpoint_tier: TierLike = None,
        run: Optional[PipelineRun] = None,
    ) -> RepurposeResult:
        """
        Repurpose ``request`` for ``account_id``.

        Args:
            account_id: Verified identity of the caller.
            request: Validated request body.
            endpoint_tier: Tier of a tier-scoped endpoint, None for the generic one.
            run: Optional pre-created run, for callers that inspect state history.

        Raises:
            RepurposerException subclasses for every rejection; see app.error_handlers.
        """
        run = run or PipelineRun(account_id)
        try:
            return await self._run(run, account_id, request, endpoint_tier)
        except (Exception, asyncio.CancelledError) as exc:
            if not run.detached:
                run.fail(exc)
            raise

    # =========================================================================
    # Pipeline steps
    # =========================================================================

    async def _run(
        self,
        run: PipelineRun,
        account_id: str,
        request: RepurposeRequest,
        endpoint_tier: TierLike,
    ) -> RepurposeResult:
        if self.schema is not None:
            self.schema.ensure_ready()

        account = await self._load_account(account_id)
        policy = self._resolve_policy(account, request, endpoint_tier)
        settings = await self._load_settings(account_id)
        run.advance(RepurposeState.POLICY_RESOLVED)

        if request.content_id:
            # Reject foreign or missing content before any AI spend
            try:
                await self.synchronizer.ensure_owned(account_id, request.content_id)
            except DatabaseError as e:
                raise StorageNotReadyError(original_error=e) from e

        wants_overage = bool(
            request.allow_overage or account.overage_consent or settings.overage_enabled
        )
        daily_count = await self._read_daily_count(run, account_id)
        decision = self.gate.evaluate(
            policy,
            monthly_count=account.monthly_usage_count,
            daily_count=daily_count,
            wants_overage=wants_overage,
            daily_degraded=daily_count is None,
        )
        if not decision.allowed:
            raise quota_exceeded_error(
                policy,
                decision.limit_type,
                decision.current_usage,
                has_overage_consent=account.overage_consent,
                overage_enabled=settings.overage_enabled,
            )
        run.advance(RepurposeState.QUOTA_CHECKED)

        platforms = self.selector.select(
            policy,
            requested=request.platforms,
            preferred=settings.preferred_platforms,
        )
        run.advance(RepurposeState.PLATFORMS_RESOLVED)

        # Fail fast on provider problems while nothing has been spent
        self.router.resolve(request.provider)
        brand_voice = request.brand_voice or settings.brand_voice

        run.advance(RepurposeState.GENERATING)
        with Timer("repurpose_generation", logger, logging.INFO):
            generation = await self.router.dispatch(
                GenerationRequest(
                    title=request.title,
                    content=request.content,
                    content_type=request.content_type,
                    platforms=platforms,
                    brand_voice=brand_voice,
                    tone=request.tone,
                    additional_instructions=request.additional_instructions,
                ),
                provider_hint=request.provider,
                model=request.model,
            )

        finalize = asyncio.create_task(
            self._finalize(
                run,
                account=account,
                policy=policy,
                request=request,
                generation=generation,
                wants_overage=wants_overage,
                daily_count=daily_count or 0,
                brand_voice=brand_voice,
            )
        )
        try:
            return await asyncio.shield(finalize)
        except asyncio.CancelledError:
            # The finalize task owns the run from here and reports its own outcome
            run.detached = True
            self._detached.add(finalize)
            finalize.add_done_callback(self._detached.discard)
            finalize.add_done_callback(run.finish_detached)
            raise

    async def _load_account(self, account_id: str) -> Account:
        try:
            account = await self.accounts.get_account(account_id)
        except DatabaseError as e:
            logger.error("Account lookup failed for %s: %s", account_id, e.internal_message)
            raise StorageNotReadyError(original_error=e) from e
        if account is None:
            raise ResourceNotFoundError(
                message="Account not found",
                resource_type="account",
                resource_id=account_id,
                error_code=ErrorCode.ACCOUNT_NOT_FOUND,
            )
        return account

    def _resolve_policy(
        self, account: Account, request: RepurposeRequest, endpoint_tier: TierLike
    ) -> TierPolicy:
        tier = self.registry.resolve_tier(account.tier)
        policy = self.registry.policy_for(tier)

        if endpoint_tier is not None and parse_tier(endpoint_tier) != tier:
            raise TierMismatchError(
                message=f"This endpoint is for {endpoint_tier} tier users only",
                endpoint_tier=str(getattr(endpoint_tier, "value", endpoint_tier)),
                current_tier=tier.value,
                correct_endpoint=tier_endpoint(tier),
            )

        if policy.is_paid and not account.has_entitled_subscription:
            raise SubscriptionRequiredError(
                message=f"An active {policy.name} subscription is required",
                plan=tier.value,
                subscription_status=account.subscription_status,
                upgrade_url=self.upgrade_url,
            )

        if len(request.title) > policy.max_title_length:
            raise ValidationError(
                message=f"Title exceeds {policy.max_title_length} characters for the {policy.name} plan",
                field="title",
                error_code=ErrorCode.VALUE_OUT_OF_RANGE,
                details={"maxLength": policy.max_title_length},
            )
        if len(request.content) > policy.max_content_length:
            raise ValidationError(
                message=f"Content exceeds {policy.max_content_length} characters for the {policy.name} plan",
                field="content",
                error_code=ErrorCode.VALUE_OUT_OF_RANGE,
                details={"maxLength": policy.max_content_length},
            )
        return policy

    async def _load_settings(self, account_id: str) -> AccountSettings:
        try:
            return await self.accounts.get_settings(account_id)
        except DatabaseError as e:
            logger.warning("Using default settings for %s: %s", account_id, e.internal_message)
            return AccountSettings()

    async def _read_daily_count(self, run: PipelineRun, account_id: str) -> Optional[int]:
        """Today's count, or None when it could not be read."""
        try:
            return await self.counters.get_daily_count(account_id)
        except DatabaseError as e:
            logger.warning("Daily usage unreadable for %s: %s", account_id, e.internal_message)
            run.warnings.append(DAILY_COUNT_DEGRADED_WARNING)
            return None

    # =========================================================================
    # Post-generation (shielded)
    # =========================================================================

    async def _finalize(
        self,
        run: PipelineRun,
        account: Account,
        policy: TierPolicy,
        request: RepurposeRequest,
        generation: GenerationResult,
        wants_overage: bool,
        daily_count: int,
        brand_voice: Optional[str],
    ) -> RepurposeResult:
        commit = await self._commit_usage(run, account, policy, wants_overage)

        run.advance(RepurposeState.PERSISTING)
        item: Optional[ContentItem] = None
        warning: Optional[str] = None
        try:
            item = await self.synchronizer.persist(
                owner_id=account.id,
                title=request.title,
                original_text=request.content,
                content_type=request.content_type,
                variants=generation.variants,
                tier=policy.tier.value,
                existing_content_id=request.content_id,
            )
        except (DatabaseError, ResourceNotFoundError) as e:
            degraded = PersistenceDegraded(original_error=e)
            logger.error(
                "Persisting repurposed content failed for %s: %s",
                account.id,
                getattr(e, "internal_message", None) or e,
            )
            warning = degraded.message

        if item is not None and self.cache is not None:
            if not await self.cache.invalidate(account.id):
                logger.warning("Content list cache for %s may be stale", account.id)
        run.advance(RepurposeState.CACHE_INVALIDATED)

        result = RepurposeResult(
            content_id=item.id if item else None,
            title=request.title,
            original_content=request.content,
            content_type=request.content_type,
            variants=generation.variants,
            usage=self._usage_summary(account, policy, commit, daily_count),
            provider=generation.provider,
            model=generation.model,
            brand_voice=brand_voice,
            warning=warning,
            warnings=list(run.warnings),
            saved=item is not None,
        )
        run.advance(RepurposeState.DONE)
        logger.info(
            "Repurposed content for %s on %s",
            account.id,
            ", ".join(result.platforms_used),
            extra={
                "plan": policy.tier.value,
                "provider": generation.provider,
                "overage_charged": result.usage.overage_charged,
                "saved": result.saved,
            },
        )
        return result

    async def _commit_usage(
        self,
        run: PipelineRun,
        account: Account,
        policy: TierPolicy,
        wants_overage: bool,
    ) -> Optional[UsageCommit]:
        """
        Consume one unit. Returns None when the store failed; the result is
        still delivered and the failure is surfaced as a warning.
        """
        try:
            commit = await self.counters.consume(account.id, policy, allow_overage=wants_overage)
        except DatabaseError as e:
            logger.error(
                "Usage commit failed for %s: %s",
                account.id,
                e.internal_message,
                extra={"reconcile": True, "plan": policy.tier.value},
            )
            run.warnings.append(USAGE_NOT_RECORDED_WARNING)
            return None

        if not commit.accepted:
            # Another request spent the last unit after our gate check
            logger.info("Quota race lost for %s (%s)", account.id, commit.limit_type.value)
            raise quota_exceeded_error(
                policy,
                commit.limit_type,
                commit.monthly_count if commit.limit_type == LimitType.MONTHLY else commit.daily_count,
                has_overage_consent=account.overage_consent,
                # Refusal only happens without consent from any source
                overage_enabled=False,
            )

        if commit.overage_event is not None:
            logger.info(
                "Overage charge recorded for %s: %s",
                account.id,
                commit.overage_event.amount,
                extra={"overage_event_id": commit.overage_event.id},
            )
        return commit

    @staticmethod
    def _usage_summary(
        account: Account,
        policy: TierPolicy,
        commit: Optional[UsageCommit],
        daily_count: int,
    ) -> UsageSummary:
        if commit is not None:
            current = commit.monthly_count
            daily = commit.daily_count
        else:
            current = account.monthly_usage_count + 1
            daily = daily_count + 1

        event = commit.overage_event if commit is not None else None
        return UsageSummary(
            current_usage=current,
            monthly_limit=policy.monthly_limit,
            remaining_usage=(
                max(0, policy.monthly_limit - current) if policy.is_monthly_bounded else None
            ),
            daily_usage=daily,
            daily_limit=policy.daily_limit,
            plan=policy.tier.value,
            overage_charged=event is not None,
            overage_amount=event.amount if event is not None else Decimal("0"),
        )
