import json

import pytest

from crawlqa.config import RunConfig
from crawlqa.core.ai_engine import NullJudge
from crawlqa.core.runner import run

from utils import BASE_URL, FakeAnalyzer, page


@pytest.mark.asyncio
async def test_run_with_injected_analyzer(tmp_path):
    analyzer = FakeAnalyzer({"/": page(links=["/about", "https://elsewhere.test/x"])})
    config = RunConfig(base_url=BASE_URL, report_path=str(tmp_path / "report.json"))
    events = []

    report = await run(
        BASE_URL,
        config=config,
        on_progress=lambda event_type, data: events.append(event_type),
        judge=NullJudge(),
        analyzer=analyzer,
    )

    assert analyzer.visited == ["/", "/about"]
    assert report.base_url == BASE_URL
    assert report.coverage_percent == 100
    assert events[0] == "run_started"
    assert events[-1] == "run_complete"

    data = json.loads((tmp_path / "report.json").read_text(encoding="utf-8"))
    assert data["summary"]["discoveredRoutes"] == ["/", "/about"]


@pytest.mark.asyncio
async def test_run_builds_default_config():
    analyzer = FakeAnalyzer({"/shop": page(links=["/shop/1"])})

    report = await run(BASE_URL, seed_path="/shop", judge=NullJudge(), analyzer=analyzer)

    assert analyzer.visited == ["/shop", "/shop/1"]
    assert report.total_completed == 2
