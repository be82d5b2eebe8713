"""Delivery orchestrator: turns notification requests into delivery decisions and records."""

from __future__ import annotations

import asyncio
import time
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError as PydanticValidationError

from notification_service.core.database import as_utc, generate_uuid7
from notification_service.core.exceptions import (
    AppException,
    ChannelUnavailableError,
    DeliveryFailure,
    NotFoundError,
    RateLimitExceeded,
    ValidationError,
)
from notification_service.core.services import BaseService
from notification_service.core.settings import get_notification_settings
from notification_service.features.notifications.channels.rate_limit import (
    FixedWindowRateLimiter,
    get_rate_limiter,
)
from notification_service.features.notifications.channels.registry import (
    ChannelRegistry,
    get_channel_registry,
)
from notification_service.features.notifications.channels.senders import (
    SenderRegistry,
    get_sender_registry,
)
from notification_service.features.notifications.enums import (
    ChannelType,
    DeliveryOutcome,
    NotificationStatus,
    Priority,
)
from notification_service.features.notifications.metrics import (
    notification_delivered_total,
    notification_delivery_duration_seconds,
    notification_processed_total,
    notification_rate_limited_total,
    notification_skipped_total,
    notification_sweep_duration_seconds,
    notification_sweep_processed_total,
)
from notification_service.features.notifications.models import Notification
from notification_service.features.notifications.preferences.resolver import (
    get_delivery_settings,
    resolve_enablement,
)
from notification_service.features.notifications.preferences.service import (
    PreferenceService,
    get_preference_service,
)
from notification_service.features.notifications.repository import (
    NotificationRepository,
    get_notification_repository,
)
from notification_service.features.notifications.schemas import (
    BatchItemResult,
    BatchResult,
    ExpiredSweepResult,
    NotificationRequest,
    ScheduledSweepResult,
    SkippedResponse,
)
from notification_service.features.notifications.templates.service import (
    TemplateService,
    get_template_service,
)
from notification_service.infra.database import get_async_session
from notification_service.infra.logging import log_context, set_log_context

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from contextlib import AbstractAsyncContextManager
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from notification_service.core.settings import NotificationSettings
    from notification_service.features.notifications.channels.base import DeliveryResult
    from notification_service.features.notifications.models import (
        NotificationChannel,
        NotificationTemplate,
    )

    SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]

REASON_RATE_LIMITED = "rate_limited"


def _validation_errors(exc: PydanticValidationError) -> list[str]:
    return [
        f"{'.'.join(str(p) for p in err['loc']) or 'request'}: {err['msg']}" for err in exc.errors()
    ]


def literal_content(request: NotificationRequest, channel: str, priority: str) -> dict[str, Any]:
    """Channel-shaped content for a request carrying its own title and message."""
    title = request.title or ""
    message = request.message or ""
    content: dict[str, Any] = {
        "title": title,
        "message": message,
        "actions": [a.model_dump() for a in request.actions or []],
        "type": request.type,
        "category": request.category,
        "priority": priority,
    }
    if channel == ChannelType.EMAIL:
        content.update({"subject": title, "html_body": None, "text_body": message})
    elif channel == ChannelType.SMS:
        content["text"] = message
    elif channel == ChannelType.PUSH:
        content["body"] = message
    elif channel == ChannelType.WEBHOOK:
        content["payload"] = {
            "title": title,
            "message": message,
            "type": request.type,
            "category": request.category,
            "metadata": request.metadata or {},
        }
    return content


class DeliveryOrchestrator(BaseService):
    """Service turning notification requests into delivery outcomes.

    Provides:
    - Single delivery: validate, gate on preferences, render, dispatch, record
    - Batches with per-item isolation and bounded concurrency
    - Scheduled sweep with atomic claiming
    - Expiry sweep archiving stale records
    - Recipient listings and read tracking

    Single deliveries only flush; the caller owns the transaction. Batches
    and sweeps open their own sessions from ``session_factory`` and commit
    per item.
    """

    def __init__(
        self,
        *,
        repository: NotificationRepository | None = None,
        preferences: PreferenceService | None = None,
        templates: TemplateService | None = None,
        channels: ChannelRegistry | None = None,
        senders: SenderRegistry | None = None,
        rate_limiter: FixedWindowRateLimiter | None = None,
        settings: NotificationSettings | None = None,
        session_factory: SessionFactory | None = None,
    ) -> None:
        """Initialize with collaborators.

        Args:
            repository: Notification repository (defaults to singleton)
            preferences: Preference service (defaults to singleton)
            templates: Template service (defaults to singleton)
            channels: Channel registry (defaults to singleton)
            senders: Sender registry (defaults to singleton)
            rate_limiter: Per-channel rate limiter (defaults to singleton)
            settings: Notification settings (defaults to cached settings)
            session_factory: Opens sessions for batches and sweeps
        """
        super().__init__()
        self._repository = repository or get_notification_repository()
        self._preferences = preferences or get_preference_service()
        self._templates = templates or get_template_service()
        self._channels = channels or get_channel_registry()
        self._senders = senders or get_sender_registry()
        self._rate_limiter = rate_limiter or get_rate_limiter()
        self._settings = settings or get_notification_settings()
        self._session_factory: SessionFactory = session_factory or get_async_session

    # ------------------------------------------------------------------
    # Single delivery
    # ------------------------------------------------------------------

    def validate_request(self, request: NotificationRequest | dict[str, Any]) -> NotificationRequest:
        """Coerce raw input into a request.

        Raises:
            ValidationError: Listing every problem with the input
        """
        if isinstance(request, NotificationRequest):
            return request
        try:
            return NotificationRequest.model_validate(request)
        except PydanticValidationError as exc:
            raise ValidationError(
                detail="Invalid notification request",
                type="invalid-notification-request",
                extra={"errors": _validation_errors(exc)},
            ) from exc

    async def create_and_send(
        self,
        session: AsyncSession,
        request: NotificationRequest | dict[str, Any],
        *,
        now: datetime | None = None,
    ) -> Notification | SkippedResponse:
        """Process one notification request.

        Args:
            session: Database session (flushed, not committed)
            request: Request model or raw mapping
            now: Reference time for quiet hours and scheduling

        Returns:
            The persisted record (sent, failed or scheduled), or a
            SkippedResponse naming the preference tier that suppressed it

        Raises:
            ValidationError: Invalid request or missing template variables
            NotFoundError: Unknown template or template version
            UnsupportedChannelError: Template does not support the channel
            ChannelUnavailableError: No active channel of the requested type
        """
        req = self.validate_request(request)
        now = now or datetime.now(UTC)
        channel_type = str(req.channel or self._settings.default_channel)
        set_log_context(recipient_id=req.recipient, channel=channel_type)

        template: NotificationTemplate | None = None
        if req.template is not None:
            template = await self._templates.resolve(session, req.template, req.template_version)
        priority = str(req.priority or (template.default_priority if template else Priority.NORMAL))

        document = await self._preferences.get_document(session, req.recipient)
        decision = resolve_enablement(
            document,
            req.category,
            req.type,
            channel_type,
            priority,
            req.template,
            now=now,
        )
        if not decision.enabled:
            notification_skipped_total.labels(reason=decision.reason).inc()
            notification_processed_total.labels(channel=channel_type, outcome="skipped").inc()
            self.logger.info(
                "Notification skipped by preferences",
                extra={"reason": decision.reason, "category": req.category, "type": req.type},
            )
            return SkippedResponse(reason=decision.reason)

        settings = get_delivery_settings(document, req.category, req.type, channel_type)
        if template is not None:
            content = self._templates.render(template, req.variables, channel_type)
        else:
            content = literal_content(req, channel_type, priority)

        scheduled_for = as_utc(req.scheduled_at)
        is_scheduled = scheduled_for is not None and scheduled_for > now

        channel: NotificationChannel | None = None
        if not is_scheduled:
            channel = await self._channels.find_default_by_type(session, channel_type)
            if channel is None:
                self.logger.warning("No active channel for type", extra={"channel_type": channel_type})
                raise ChannelUnavailableError(
                    detail=f"No active channel of type '{channel_type}'",
                    extra={"channel": channel_type},
                )

        record = Notification(
            recipient_id=req.recipient,
            type=req.type,
            category=req.category,
            priority=priority,
            channel=channel_type,
            template_name=template.name if template else None,
            template_version=template.version if template else None,
            title=content.get("title") or "",
            message=content.get("message") or "",
            actions=content.get("actions") or None,
            rendered_content=content,
            delivery_settings=settings,
            related_resource=req.related_resource.model_dump() if req.related_resource else None,
            extra_metadata=req.metadata,
            status=NotificationStatus.SCHEDULED if is_scheduled else NotificationStatus.PENDING,
            scheduled_for=scheduled_for if is_scheduled else None,
            expires_at=as_utc(req.expires_at),
        )
        record = await self._repository.create(session, record)
        set_log_context(notification_id=str(record.id))

        # Scheduled records resolve their channel when the sweep sends them
        if channel is None:
            notification_processed_total.labels(channel=channel_type, outcome="scheduled").inc()
            self.logger.info(
                "Notification scheduled",
                extra={"scheduled_for": scheduled_for.isoformat() if scheduled_for else None},
            )
            return record

        await self._dispatch(session, record, channel, now=now)
        notification_processed_total.labels(channel=channel_type, outcome=record.status).inc()
        return record

    async def _dispatch(
        self,
        session: AsyncSession,
        record: Notification,
        channel: NotificationChannel,
        *,
        now: datetime | None = None,
    ) -> None:
        """Send a record through a channel and store the terminal status.

        Sender failures, timeouts and rate limiting become a ``failed``
        record; they never propagate.
        """
        record.channel_id = channel.id
        result: DeliveryResult | None = None
        error: str | None = None

        sender = self._senders.get(channel.type)
        if sender is None:
            error = f"No sender registered for channel type '{channel.type}'"
        else:
            try:
                if self._settings.rate_limit_enabled:
                    await self._rate_limiter.acquire(channel)
                start = time.perf_counter()
                try:
                    async with asyncio.timeout(self._settings.dispatch_timeout_seconds):
                        result = await sender.send(
                            record.rendered_content or {},
                            record.delivery_settings or {},
                            channel,
                        )
                finally:
                    notification_delivery_duration_seconds.labels(channel=channel.type).observe(
                        time.perf_counter() - start,
                    )
            except RateLimitExceeded:
                notification_rate_limited_total.labels(channel=channel.type).inc()
                error = REASON_RATE_LIMITED
            except DeliveryFailure as exc:
                self.logger.warning(
                    "Channel provider rejected delivery",
                    extra={"channel": channel.name, "retryable": exc.extra.get("retryable", True)},
                )
                error = exc.detail
            except TimeoutError:
                error = f"Delivery timed out after {self._settings.dispatch_timeout_seconds}s"
            except Exception as exc:  # noqa: BLE001
                self.logger.exception("Channel sender raised", extra={"channel": channel.name})
                error = str(exc) or exc.__class__.__name__

        now = now or datetime.now(UTC)
        if result is not None and result.success:
            record.status = NotificationStatus.SENT
            record.sent_at = now
            record.provider_reference = result.provider_ref
            record.error_message = None
            outcome = DeliveryOutcome.SENT
            self.logger.info("Notification sent", extra={"channel": channel.name})
        else:
            if error is None and result is not None:
                error = result.error_message or "Delivery failed"
            record.status = NotificationStatus.FAILED
            record.failed_at = now
            record.error_message = error
            outcome = DeliveryOutcome.FAILED
            self.logger.warning(
                "Notification delivery failed",
                extra={"channel": channel.name, "error": error},
            )

        notification_delivered_total.labels(channel=channel.type, status=str(outcome)).inc()
        await self._channels.update_delivery_stats(session, channel, outcome, now=now)
        await self._repository.save(session, record)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def _send_batch_item(
        self,
        index: int,
        item: NotificationRequest | dict[str, Any],
        semaphore: asyncio.Semaphore,
    ) -> BatchItemResult:
        async with semaphore, self._session_factory() as session:
            try:
                outcome = await self.create_and_send(session, item)
                await session.commit()
            except AppException as exc:
                await session.rollback()
                self._lazy.debug(lambda: f"batch[{index}] rejected: {exc.detail}")
                return BatchItemResult(index=index, outcome="failed", error=exc.detail)
            except Exception as exc:  # noqa: BLE001
                await session.rollback()
                self.logger.exception("Batch item failed", extra={"index": index})
                return BatchItemResult(
                    index=index,
                    outcome="failed",
                    error=str(exc) or exc.__class__.__name__,
                )

        if isinstance(outcome, SkippedResponse):
            return BatchItemResult(index=index, outcome="skipped", reason=outcome.reason)
        if outcome.status == NotificationStatus.SENT:
            return BatchItemResult(index=index, outcome="sent", notification_id=outcome.id)
        if outcome.status == NotificationStatus.SCHEDULED:
            return BatchItemResult(index=index, outcome="scheduled", notification_id=outcome.id)
        return BatchItemResult(
            index=index,
            outcome="failed",
            notification_id=outcome.id,
            error=outcome.error_message,
        )

    async def send_batch(self, requests: Sequence[NotificationRequest | dict[str, Any]]) -> BatchResult:
        """Process many requests independently.

        Items run concurrently (bounded by ``batch_concurrency``), each in its
        own session, so a failing item never affects another.

        Returns:
            Counts plus one detail entry per request in input order;
            ``sent + skipped + failed + scheduled == total``
        """
        semaphore = asyncio.Semaphore(self._settings.batch_concurrency)
        details = await asyncio.gather(
            *(self._send_batch_item(i, item, semaphore) for i, item in enumerate(requests)),
        )

        result = BatchResult(total=len(requests), details=list(details))
        for detail in details:
            setattr(result, detail.outcome, getattr(result, detail.outcome) + 1)

        self.logger.info(
            "Batch processed",
            extra={
                "total": result.total,
                "sent": result.sent,
                "skipped": result.skipped,
                "failed": result.failed,
                "scheduled": result.scheduled,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    async def _send_claimed(
        self,
        notification_id: UUID,
        claim_token: str,
        semaphore: asyncio.Semaphore,
    ) -> bool:
        async with semaphore:
            with log_context(sweep="scheduled", notification_id=str(notification_id)):
                try:
                    return await self._send_claimed_record(notification_id)
                except Exception as exc:  # noqa: BLE001
                    self.logger.exception(
                        "Scheduled notification processing failed",
                        extra={"notification_id": str(notification_id)},
                    )
                    await self._release_failed_claim(notification_id, claim_token, exc)
                    return False

    async def _release_failed_claim(self, notification_id: UUID, claim_token: str, exc: Exception) -> None:
        """Mark a claimed record failed after its delivery transaction rolled back.

        Without this the record would stay ``in_progress``, which neither
        sweep picks up again.
        """
        error = str(exc) or exc.__class__.__name__
        try:
            async with self._session_factory() as session:
                released = await self._repository.fail_claimed(session, notification_id, claim_token, error)
                await session.commit()
        except Exception:  # noqa: BLE001
            self.logger.exception(
                "Could not mark claimed notification as failed",
                extra={"notification_id": str(notification_id), "claim_token": claim_token},
            )
            return
        self._lazy.debug(lambda: f"sweep.release_failed_claim({notification_id}) -> {released}")

    async def _send_claimed_record(self, notification_id: UUID) -> bool:
        async with self._session_factory() as session:
            record = await self._repository.get(session, notification_id)
            if record is None:
                return False
            set_log_context(recipient_id=record.recipient_id, channel=record.channel)

            channel = await self._channels.find_default_by_type(session, record.channel)
            if channel is None:
                record.status = NotificationStatus.FAILED
                record.failed_at = datetime.now(UTC)
                record.error_message = f"No active channel of type '{record.channel}'"
                await self._repository.save(session, record)
                self.logger.warning(
                    "Scheduled notification has no channel",
                    extra={"channel_type": record.channel},
                )
            else:
                await self._dispatch(session, record, channel)
            await session.commit()
            return record.status == NotificationStatus.SENT

    async def process_scheduled_notifications(
        self,
        limit: int | None = None,
        *,
        now: datetime | None = None,
    ) -> ScheduledSweepResult:
        """Deliver due scheduled notifications.

        Records are claimed with one atomic conditional update, so concurrent
        or repeated invocations never send the same record twice.

        Args:
            limit: Max records to claim (defaults to ``scheduled_batch_limit``)
            now: Reference time

        Returns:
            ``total`` claimed by this call, split into ``sent`` and ``failed``
        """
        limit = limit or self._settings.scheduled_batch_limit
        started = time.perf_counter()
        claim_token = str(generate_uuid7())

        async with self._session_factory() as session:
            claimed = await self._repository.claim_due_scheduled(
                session,
                claim_token,
                limit=limit,
                now=now,
            )
            ids = [record.id for record in claimed]
            await session.commit()

        semaphore = asyncio.Semaphore(self._settings.batch_concurrency)
        outcomes = await asyncio.gather(*(self._send_claimed(i, claim_token, semaphore) for i in ids))

        result = ScheduledSweepResult(total=len(ids), sent=sum(outcomes))
        result.failed = result.total - result.sent

        notification_sweep_processed_total.labels(sweep="scheduled", result="sent").inc(result.sent)
        notification_sweep_processed_total.labels(sweep="scheduled", result="failed").inc(result.failed)
        notification_sweep_duration_seconds.labels(sweep="scheduled").observe(time.perf_counter() - started)
        self.logger.info(
            "Scheduled sweep finished",
            extra={"claim_token": claim_token, **result.model_dump()},
        )
        return result

    async def process_expired_notifications(
        self,
        limit: int | None = None,
        *,
        now: datetime | None = None,
    ) -> ExpiredSweepResult:
        """Archive notifications whose expiry has passed.

        Best effort: each record is archived in its own transaction, and a
        record that could not be archived (an error, or archived concurrently)
        counts as failed without stopping the sweep.

        Args:
            limit: Max records to examine (defaults to ``expired_batch_limit``)
            now: Reference time

        Returns:
            ``total`` examined, split into ``archived`` and ``failed``
        """
        limit = limit or self._settings.expired_batch_limit
        now = now or datetime.now(UTC)
        started = time.perf_counter()

        async with self._session_factory() as session:
            ids = await self._repository.find_expired_candidates(session, limit=limit, now=now)

        result = ExpiredSweepResult(total=len(ids))
        for notification_id in ids:
            try:
                async with self._session_factory() as session:
                    archived = await self._repository.archive(session, notification_id, now=now)
                    await session.commit()
            except Exception:  # noqa: BLE001
                self.logger.exception(
                    "Failed to archive notification",
                    extra={"notification_id": str(notification_id)},
                )
                archived = False
            if archived:
                result.archived += 1
            else:
                result.failed += 1

        notification_sweep_processed_total.labels(sweep="expired", result="archived").inc(result.archived)
        notification_sweep_processed_total.labels(sweep="expired", result="failed").inc(result.failed)
        notification_sweep_duration_seconds.labels(sweep="expired").observe(time.perf_counter() - started)
        self.logger.info("Expiry sweep finished", extra=result.model_dump())
        return result

    # ------------------------------------------------------------------
    # Recipient views
    # ------------------------------------------------------------------

    async def list_for_recipient(
        self,
        session: AsyncSession,
        recipient_id: str,
        *,
        unread_only: bool = False,
        category: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[Sequence[Notification], int, int]:
        """List a recipient's notifications.

        Returns:
            Tuple of (notifications, total_count, unread_count)
        """
        items, total = await self._repository.list_for_recipient(
            session,
            recipient_id,
            unread_only=unread_only,
            category=category,
            limit=limit,
            offset=offset,
        )
        unread = await self._repository.count_unread(session, recipient_id, category)
        return items, total, unread

    async def count_unread(
        self,
        session: AsyncSession,
        recipient_id: str,
        category: str | None = None,
    ) -> int:
        return await self._repository.count_unread(session, recipient_id, category)

    async def mark_as_read(
        self,
        session: AsyncSession,
        notification_id: UUID,
        recipient_id: str,
    ) -> Notification:
        """Mark one notification read.

        Raises:
            NotFoundError: If the notification does not exist for the recipient
        """
        notification = await self._repository.mark_as_read(session, notification_id, recipient_id)
        if notification is None:
            raise NotFoundError(
                detail=f"Notification {notification_id} not found",
                type="notification-not-found",
                extra={"notification_id": str(notification_id), "recipient_id": recipient_id},
            )
        return notification

    async def mark_all_as_read(
        self,
        session: AsyncSession,
        recipient_id: str,
        category: str | None = None,
    ) -> int:
        updated = await self._repository.mark_all_as_read(session, recipient_id, category)
        self.logger.info(
            "Notifications marked as read",
            extra={"recipient_id": recipient_id, "category": category, "updated": updated},
        )
        return updated


_orchestrator: DeliveryOrchestrator | None = None


def get_delivery_orchestrator() -> DeliveryOrchestrator:
    """Get DeliveryOrchestrator singleton instance."""
    global _orchestrator
    if _orchestrator is None:
        _orchestrator = DeliveryOrchestrator()
    return _orchestrator


__all__ = ["DeliveryOrchestrator", "get_delivery_orchestrator", "literal_content"]
