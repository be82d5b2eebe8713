"""Prometheus metrics for notification delivery monitoring.

This module provides metrics for tracking the delivery engine:
- Processed notifications by outcome
- Preference skips by deciding tier
- Delivery results and duration by channel
- Rate limit rejections
- Sweep results

Usage:
    from notification_service.features.notifications.metrics import (
        notification_processed_total,
        notification_skipped_total,
    )

    notification_processed_total.labels(channel="email", outcome="sent").inc()
    notification_skipped_total.labels(reason="quiet_hours").inc()
"""

from __future__ import annotations

from prometheus_client import Counter, Histogram

# =============================================================================
# Intake Metrics
# =============================================================================

notification_processed_total = Counter(
    "notification_processed_total",
    "Total number of notification requests processed by outcome",
    labelnames=["channel", "outcome"],
)
"""
Counter for tracking the outcome of every processed request.

Labels:
    channel: Channel type (email, sms, push, webhook, in-app, custom)
    outcome: sent, failed, skipped or scheduled

Example:
    notification_processed_total.labels(channel="in-app", outcome="sent").inc()
"""

notification_skipped_total = Counter(
    "notification_skipped_total",
    "Total number of notifications suppressed by recipient preferences",
    labelnames=["reason"],
)
"""
Counter for tracking preference skips.

Labels:
    reason: Deciding tier (global, channel, quiet_hours, template,
        category_priority, category, type, channel_default)
"""

# =============================================================================
# Delivery Metrics
# =============================================================================

notification_delivered_total = Counter(
    "notification_delivered_total",
    "Total number of channel deliveries by channel and status",
    labelnames=["channel", "status"],
)
"""
Counter for tracking sender results.

Labels:
    channel: Channel type
    status: sent or failed
"""

notification_delivery_duration_seconds = Histogram(
    "notification_delivery_duration_seconds",
    "Notification delivery duration in seconds",
    labelnames=["channel"],
    buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)
"""
Histogram tracking sender call duration.

Labels:
    channel: Channel type

Buckets:
    - 0.05s-0.25s: in-app
    - 0.5s-2.5s: email/webhook API calls
    - 5s-30s: slow providers up to the dispatch timeout
"""

notification_rate_limited_total = Counter(
    "notification_rate_limited_total",
    "Total number of deliveries rejected by a channel rate limit",
    labelnames=["channel"],
)

# =============================================================================
# Sweep Metrics
# =============================================================================

notification_sweep_processed_total = Counter(
    "notification_sweep_processed_total",
    "Total number of records handled by scheduled and expiry sweeps",
    labelnames=["sweep", "result"],
)
"""
Counter for tracking sweep results.

Labels:
    sweep: scheduled or expired
    result: sent, archived or failed

Example:
    notification_sweep_processed_total.labels(sweep="expired", result="archived").inc(3)
"""

notification_sweep_duration_seconds = Histogram(
    "notification_sweep_duration_seconds",
    "Duration of a sweep run in seconds",
    labelnames=["sweep"],
    buckets=[0.1, 0.5, 1.0, 5.0, 15.0, 60.0, 300.0],
)


__all__ = [
    "notification_delivered_total",
    "notification_delivery_duration_seconds",
    "notification_processed_total",
    "notification_rate_limited_total",
    "notification_skipped_total",
    "notification_sweep_duration_seconds",
    "notification_sweep_processed_total",
]
