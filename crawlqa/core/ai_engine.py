"""AI judgment collaborator for the defect classifier.

GeminiJudge sends a page snapshot to Gemini and asks a QA-engineer style
question: what else looks wrong here? The answer is parsed leniently;
anything unusable simply means no extra defects. Without GEMINI_API_KEY
the judge is unavailable and the scheduler runs on the deterministic
rules alone.
"""

from __future__ import annotations

import asyncio
import json
import logging
import os
import re
from typing import Protocol

from crawlqa.core.classifier import defects_from_judgment
from crawlqa.models.types import Defect, PageSnapshot


logger = logging.getLogger(__name__)


class DefectJudge(Protocol):

    async def classify_additional(self, snapshot: PageSnapshot) -> list[Defect]:
        ...


class NullJudge:
    """Judge that never finds anything."""

    async def classify_additional(self, snapshot: PageSnapshot) -> list[Defect]:
        return []


class GeminiJudge:
    """Wraps the Gemini API calls used to judge page snapshots."""

    def __init__(self, model_name: str = "gemini-2.0-flash", min_confidence: float = 0.5):
        self._model_name = model_name
        self._model = None
        self._call_count = 0
        self.min_confidence = min_confidence

    def _ensure_model(self):
        if self._model:
            return
        api_key = os.environ.get("GEMINI_API_KEY")
        if not api_key:
            raise RuntimeError("GEMINI_API_KEY not set")
        import google.generativeai as genai
        genai.configure(api_key=api_key)
        self._model = genai.GenerativeModel(
            self._model_name,
            generation_config={"temperature": 0.0},
        )

    @property
    def available(self) -> bool:
        return bool(os.environ.get("GEMINI_API_KEY"))

    @property
    def stats(self) -> dict:
        return {"calls": self._call_count, "model": self._model_name}

    async def _call(self, parts: list) -> dict | None:
        """Make a Gemini API call and parse the reply as JSON."""
        if not self.available:
            return None

        self._ensure_model()
        self._call_count += 1

        def _sync():
            resp = self._model.generate_content(parts)
            return resp.text if resp and resp.text else None

        text = await asyncio.to_thread(_sync)
        if not text:
            return None
        return parse_json_reply(text)

    async def classify_additional(self, snapshot: PageSnapshot) -> list[Defect]:
        response = await self._call([
            f"""You are a senior QA engineer reviewing the automated analysis of one page of a web application.

PAGE SNAPSHOT:
{json.dumps(snapshot.to_dict(), indent=2)}

Report any defects the snapshot reveals beyond the raw runtime errors and slow load times, which are already recorded.
Avoid false positives. If the page looks fine, return an empty list.

Respond in JSON: {{"defects": [{{"kind": "accessibility|performance|functionality|visual|api-error", "severity": "low|medium|high", "description": "..."}}], "confidence": <0.0-1.0>}}"""
        ])
        defects = defects_from_judgment(response, snapshot.path, self.min_confidence)
        if defects:
            logger.info("AI judgment added %d defect(s) on %s", len(defects), snapshot.path)
        return defects


def parse_json_reply(text: str) -> dict | None:
    """Extract the JSON object from a model reply, tolerating code fences."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = re.sub(r"^```\w*\n?", "", cleaned)
        cleaned = re.sub(r"\n?```\s*$", "", cleaned)
    try:
        parsed = json.loads(cleaned)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", cleaned)
        if not match:
            return None
        try:
            parsed = json.loads(match.group(0))
        except json.JSONDecodeError:
            return None
    return parsed if isinstance(parsed, dict) else None


def default_judge(min_confidence: float = 0.5) -> DefectJudge:
    judge = GeminiJudge(min_confidence=min_confidence)
    if judge.available:
        return judge
    return NullJudge()
