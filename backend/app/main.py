"""Crawl-test API: start runs in the background and stream their progress over SSE."""

import asyncio
import json
import logging
import uuid
from datetime import datetime

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel

from crawlqa import __version__
from crawlqa.config import RunConfig, normalize_base_url
from crawlqa.core import runner
from crawlqa.models.types import RunReport

logger = logging.getLogger(__name__)

app = FastAPI(title="Crawl Test API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

runs: dict[str, dict] = {}
# Per-run event queues for SSE streaming
_event_queues: dict[str, list[asyncio.Queue]] = {}

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


class RunRequest(BaseModel):
    url: str
    seed_path: str = "/"
    max_retries: int | None = 3


class RunResponse(BaseModel):
    run_id: str
    status: str
    url: str


@app.get("/health")
def health():
    return {"status": "ok", "service": "crawlqa-api", "version": __version__}


@app.post("/api/v1/runs", response_model=RunResponse)
async def start_run(req: RunRequest, background_tasks: BackgroundTasks):
    url = normalize_base_url(req.url)
    run_id = str(uuid.uuid4())[:8]

    runs[run_id] = {
        "run_id": run_id,
        "url": url,
        "status": "running",
        "started_at": datetime.now().isoformat(),
        "report": None,
        "error": None,
    }
    _event_queues[run_id] = []

    config = RunConfig(base_url=url, seed_path=req.seed_path, max_retries=req.max_retries)
    background_tasks.add_task(execute_run, run_id, config)

    return RunResponse(run_id=run_id, status="running", url=url)


@app.get("/api/v1/runs/{run_id}/stream")
async def run_stream(run_id: str, request: Request):
    """SSE endpoint that streams live progress events during a run."""
    if run_id not in runs:
        raise HTTPException(status_code=404, detail="Run not found")

    entry = runs[run_id]
    if entry["status"] != "running":
        return StreamingResponse(
            _final_event(entry), media_type="text/event-stream", headers=SSE_HEADERS,
        )

    queue: asyncio.Queue = asyncio.Queue()
    _event_queues.setdefault(run_id, []).append(queue)

    async def event_generator():
        try:
            while True:
                if await request.is_disconnected():
                    break

                try:
                    event = await asyncio.wait_for(queue.get(), timeout=30.0)
                except asyncio.TimeoutError:
                    yield ": keepalive\n\n"
                    continue

                if event is None:
                    break

                yield _format_event(event)

                if event.get("type") == "run_complete":
                    break
        finally:
            if queue in _event_queues.get(run_id, []):
                _event_queues[run_id].remove(queue)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


def _format_event(event: dict) -> str:
    return f"event: {event.get('type', 'update')}\ndata: {json.dumps(event)}\n\n"


async def _final_event(entry: dict):
    """Replay the outcome of a run that ended before the client connected."""
    report: RunReport | None = entry["report"]
    if entry["status"] == "completed" and report is not None:
        yield _format_event({
            "type": "run_complete",
            "completed": report.total_completed,
            "discovered": report.total_discovered_routes,
            "defects": report.defect_count,
            "coverage": report.coverage_percent,
        })
    else:
        yield _format_event({"type": "run_failed", "error": entry["error"]})


@app.get("/api/v1/runs/{run_id}")
async def get_run(run_id: str):
    if run_id not in runs:
        raise HTTPException(status_code=404, detail="Run not found")

    entry = runs[run_id]
    if entry["status"] == "completed" and entry["report"]:
        report: RunReport = entry["report"]
        return {
            "run_id": run_id,
            "status": "completed",
            "url": entry["url"],
            "started_at": entry["started_at"],
            "report": report.to_dict(),
            "defect_summary": {
                "total": report.defect_count,
                "by_severity": {k: len(v) for k, v in report.defects_by_severity().items()},
                "by_kind": report.defects_by_kind(),
            },
        }

    return {
        "run_id": run_id,
        "status": entry["status"],
        "url": entry["url"],
        "started_at": entry["started_at"],
        "error": entry["error"],
    }


@app.get("/api/v1/runs")
async def list_runs():
    return [
        {
            "run_id": r["run_id"],
            "url": r["url"],
            "status": r["status"],
            "started_at": r["started_at"],
            "coverage_percent": r["report"].coverage_percent if r.get("report") else None,
        }
        for r in runs.values()
    ]


def _broadcast_event(run_id: str, event_type: str, data: dict):
    """Push an SSE event to all connected clients for this run."""
    event = {"type": event_type, **data}
    for q in _event_queues.get(run_id, []):
        q.put_nowait(event)


async def execute_run(run_id: str, config: RunConfig):
    def on_progress(event_type: str, data: dict):
        _broadcast_event(run_id, event_type, data)

    try:
        report = await runner.run(config.base_url, config=config, on_progress=on_progress)
        runs[run_id]["status"] = "completed"
        runs[run_id]["report"] = report
    except Exception as e:  # pylint: disable=broad-except
        logger.exception("Run %s failed", run_id)
        runs[run_id]["status"] = "failed"
        runs[run_id]["error"] = str(e)[:500]
        _broadcast_event(run_id, "run_failed", {"error": str(e)[:500]})

    # None closes every open stream for this run
    for q in _event_queues.get(run_id, []):
        q.put_nowait(None)
