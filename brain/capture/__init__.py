"""
Capture - Thought Intake

Receives Slack messages and files each one into exactly one destination.

Key Components:
- Classifier: LLM routing with destination-prefix override
- CapturePipeline: dedup -> classify -> confidence gate -> persist -> notify
- CorrectionPipeline: `fix: <target>` thread replies
- Handlers: Slack event parsing and request verification

Rules:
1. One Inbox Log entry per source message, ever
2. Below the confidence threshold nothing is filed, only logged
3. A prefix forces the destination with confidence 1.0
4. Corrections keep the superseded record
5. Deleted entries stay deleted
6. A failed reply never undoes a capture
"""

from .classifier import Classifier, ClassificationError
from .correction import CorrectionPipeline
from .dedup import PendingMessages
from .pipeline import CapturePipeline, Outcome, PipelineOutcome

__all__ = [
    "Classifier",
    "ClassificationError",
    "CapturePipeline",
    "CorrectionPipeline",
    "PendingMessages",
    "Outcome",
    "PipelineOutcome",
]
