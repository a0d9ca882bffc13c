"""
cronspine - recurring-job scheduling core.

Cron expression evaluation, timezone-aware next-run computation, a
tick-driven scheduler with durable job state, execution rate limiting and
an audit trail of every job event.
"""

__version__ = "0.1.0"
