"""Approval policy for scheduled actions.

A stateless classification of a job payload's action.  Nothing is ever
blocked here: the policy only says whether a human should approve the job
before it is created.  Two families need approval:

- billing-like actions (anything that can spend money), and
- actions that would themselves create schedules (a job scheduling jobs).

The scheduler never consults the policy; callers such as ``ScheduleTool``
do, before calling ``CronScheduler.create``.
"""

from __future__ import annotations

from dataclasses import dataclass

from cronspine.core.scheduling.models import CronJobPayload

BILLING_KEYWORDS: tuple[str, ...] = (
    "billing",
    "payment",
    "pay_",
    "purchase",
    "spend",
    "credit",
    "charge",
    "invoice",
    "subscription",
    "refund",
)

RECURSIVE_CRON_KEYWORDS: tuple[str, ...] = ("schedule", "cron")


@dataclass(frozen=True)
class CronPolicyResult:
    allowed: bool
    requires_approval: bool
    reason: str


def is_billing_action(action: str) -> bool:
    normalized = action.lower()
    return any(keyword in normalized for keyword in BILLING_KEYWORDS)


def is_recursive_cron_action(action: str) -> bool:
    normalized = action.lower()
    return any(keyword in normalized for keyword in RECURSIVE_CRON_KEYWORDS)


def evaluate_cron_policy(payload: CronJobPayload) -> CronPolicyResult:
    """Classify ``payload.action``; billing takes precedence over recursion."""
    action = payload.action
    if is_billing_action(action):
        return CronPolicyResult(
            allowed=True,
            requires_approval=True,
            reason=f"Action '{action}' looks billing-related and requires user approval",
        )
    if is_recursive_cron_action(action):
        return CronPolicyResult(
            allowed=True,
            requires_approval=True,
            reason=f"Action '{action}' would create scheduled jobs from a cron job and requires user approval",
        )
    return CronPolicyResult(
        allowed=True,
        requires_approval=False,
        reason="Action does not require approval",
    )


__all__ = [
    "BILLING_KEYWORDS",
    "RECURSIVE_CRON_KEYWORDS",
    "CronPolicyResult",
    "evaluate_cron_policy",
    "is_billing_action",
    "is_recursive_cron_action",
]
