"""
Digest summarizer

Turns collected digest data into the Slack text of the morning digest and
the weekly review. The wording is left to the model; only the section
layout is prescribed.
"""

import json
import logging

from ..common.llm_client import LLMClient
from .collector import DigestData, WeeklyData

logger = logging.getLogger("brain.digest.summarizer")

SYSTEM_PROMPT = """You are a personal productivity assistant writing messages for Slack.

Use Slack mrkdwn formatting, NOT standard Markdown:
- Bold text uses single asterisks: *bold*
- Bullet points use the • character
- Italics use single underscores: _italic_"""

DAILY_DIGEST_PROMPT = """Write a brief, actionable morning digest from the data below. Keep it under 180 words, friendly and easy to scan, with emoji section markers.

Sections, in this order:
:sunny: Good morning! Here's your focus for today:
:dart: *Top 3 Actions:* the most important concrete next actions from active projects, then an admin item or follow-up if available
:warning: *Might be stuck on:* stalled projects (not updated in 7+ days); skip if none
:trophy: *Small win to notice:* a recently completed item or positive progress
:book: *Word of the Day:* only when vocabulary_word is present: *word* (part of speech), _definition_, and "Example: ..." when an example is given
:bulb: *Daily Spark:* one short quote about persistence or resilience, with attribution

Mention overdue admin tasks prominently with :rotating_light:. Use :bust_in_silhouette: for people who need a follow-up.

Data:
{data}"""

WEEKLY_REVIEW_PROMPT = """Write a weekly review from the data below. Keep it under 250 words, specific and insightful, with emoji section markers.

Sections, in this order:
:bar_chart: *Your week in review:*
:white_check_mark: *What happened:* captures processed, projects moved forward, new people logged, and new vocabulary words (with the total) when new_vocabulary > 0
:arrows_counterclockwise: *Biggest open loops:* the most pressing waiting or blocked project, overdue admin, people needing follow-up
:rocket: *Suggested focus for next week:* three actionable recommendations
:mag: *Recurring theme noticed:* one sentence about patterns in the week's captures
:muscle: *Weekly motivation:* one short quote about perseverance, with attribution

Reference actual project and task names from the data.

Data:
{data}"""


class Summarizer:
    """LLM-backed digest writer"""

    def __init__(self, llm: LLMClient, daily_max_tokens: int = 500, weekly_max_tokens: int = 700):
        self._llm = llm
        self._daily_max_tokens = daily_max_tokens
        self._weekly_max_tokens = weekly_max_tokens

    @property
    def is_available(self) -> bool:
        return self._llm is not None and self._llm.is_available

    def daily_digest(self, data: DigestData) -> str:
        """
        Generate the morning digest text.

        Raises:
            RuntimeError: LLM client unavailable or returned nothing
        """
        return self._generate(DAILY_DIGEST_PROMPT, data, self._daily_max_tokens)

    def weekly_review(self, data: WeeklyData) -> str:
        return self._generate(WEEKLY_REVIEW_PROMPT, data, self._weekly_max_tokens)

    def _generate(self, template: str, data, max_tokens: int) -> str:
        prompt = template.format(
            data=json.dumps(data.model_dump(mode="json", exclude_none=True), indent=2),
        )
        text = self._llm.generate(prompt, system=SYSTEM_PROMPT, max_tokens=max_tokens, timeout=60.0)
        if not text:
            raise RuntimeError("Summarizer returned an empty response")
        logger.info("Generated %s (%d chars)", type(data).__name__, len(text))
        return text
