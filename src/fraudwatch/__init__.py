"""fraudwatch package for transaction risk scoring and fraud-review metrics."""

__all__ = [
    "schemas",
    "errors",
    "profile",
    "scorer",
    "knowledge_base",
    "metrics",
    "alerts",
    "documents",
    "advisory",
    "data_loader",
    "monitor",
    "report",
    "cli",
]
