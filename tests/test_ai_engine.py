from unittest.mock import AsyncMock

import pytest

from crawlqa.core.ai_engine import GeminiJudge, NullJudge, default_judge, parse_json_reply
from crawlqa.models.types import DefectKind, PageSnapshot


SNAPSHOT = PageSnapshot(work_item_id="initial-test-root", path="/", timing_ms=640)


def test_parse_plain_json():
    assert parse_json_reply('{"defects": [], "confidence": 0.8}') == {"defects": [], "confidence": 0.8}


def test_parse_fenced_json():
    reply = '```json\n{"defects": [], "confidence": 1}\n```'
    assert parse_json_reply(reply) == {"defects": [], "confidence": 1}


def test_parse_json_inside_prose():
    reply = 'Here is my review:\n{"defects": [], "confidence": 0.4}\nThanks!'
    assert parse_json_reply(reply) == {"defects": [], "confidence": 0.4}


def test_parse_garbage():
    assert parse_json_reply("The page looks fine.") is None
    assert parse_json_reply("[1, 2, 3]") is None
    assert parse_json_reply("{not json}") is None


def test_default_judge_without_key(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    assert isinstance(default_judge(), NullJudge)


def test_default_judge_with_key(monkeypatch):
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    judge = default_judge(min_confidence=0.8)
    assert isinstance(judge, GeminiJudge)
    assert judge.min_confidence == 0.8


@pytest.mark.asyncio
async def test_unavailable_judge_adds_nothing(monkeypatch):
    monkeypatch.delenv("GEMINI_API_KEY", raising=False)
    judge = GeminiJudge()
    assert await judge.classify_additional(SNAPSHOT) == []
    assert judge.stats["calls"] == 0


@pytest.mark.asyncio
async def test_judge_converts_reply():
    judge = GeminiJudge()
    judge._call = AsyncMock(return_value={
        "defects": [{"kind": "accessibility", "severity": "low", "description": "Missing lang attribute"}],
        "confidence": 0.9,
    })

    defects = await judge.classify_additional(SNAPSHOT)

    assert len(defects) == 1
    assert defects[0].kind is DefectKind.ACCESSIBILITY
    assert defects[0].path == "/"
    prompt = judge._call.call_args.args[0][0]
    assert '"timingMs": 640' in prompt


@pytest.mark.asyncio
async def test_judge_ignores_unsure_reply():
    judge = GeminiJudge(min_confidence=0.7)
    judge._call = AsyncMock(return_value={
        "defects": [{"description": "Maybe misaligned"}],
        "confidence": 0.3,
    })
    assert await judge.classify_additional(SNAPSHOT) == []


@pytest.mark.asyncio
async def test_null_judge():
    assert await NullJudge().classify_additional(SNAPSHOT) == []
