"""
Digest - Scheduled Summaries

Morning digest, weekly review and vocabulary example backfill.
"""

from .backfill import BackfillReport, ExampleBackfiller
from .collector import DigestCollector, DigestData, WeeklyData
from .summarizer import Summarizer

__all__ = [
    "BackfillReport",
    "ExampleBackfiller",
    "DigestCollector",
    "DigestData",
    "WeeklyData",
    "Summarizer",
]
