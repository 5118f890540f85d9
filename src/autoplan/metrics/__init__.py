"""Planning metrics."""

from .insights import InsightSummary, collect_plan_metrics, summarize_week, weekly_interval

__all__ = ["InsightSummary", "collect_plan_metrics", "summarize_week", "weekly_interval"]
