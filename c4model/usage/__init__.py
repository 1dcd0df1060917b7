"""Usage evidence between components."""

from .matcher import MAX_CALL_DEPTH, UsageIndex, UsageMatcher, UsageSummary, summarize_usage

__all__ = ["MAX_CALL_DEPTH", "UsageIndex", "UsageMatcher", "UsageSummary", "summarize_usage"]
