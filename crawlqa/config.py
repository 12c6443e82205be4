"""Run configuration with environment overrides."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields

from crawlqa.core.gateway import normalize_path


DEFAULT_SEED_PATH = "/"


@dataclass
class RunConfig:
    base_url: str
    seed_path: str = DEFAULT_SEED_PATH
    max_retries: int | None = 3   # None: retry forever
    navigation_timeout_ms: int = 20000
    slow_page_ms: int = 3000
    headless: bool = True
    min_judgment_confidence: float = 0.5
    report_path: str | None = None

    def __post_init__(self):
        self.base_url = normalize_base_url(self.base_url)
        self.seed_path = normalize_path(self.seed_path)
        if self.max_retries is not None and self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")

    @classmethod
    def from_env(cls, base_url: str, **overrides) -> RunConfig:
        """Build a config from ``CRAWLQA_*`` environment variables.

        Explicit keyword overrides win over the environment; overrides
        set to None are ignored, except ``max_retries`` which uses None
        to mean unbounded.
        """
        values: dict = {}
        env = os.environ
        if "CRAWLQA_MAX_RETRIES" in env:
            raw = env["CRAWLQA_MAX_RETRIES"].strip().lower()
            values["max_retries"] = None if raw in ("", "none", "unbounded") else int(raw)
        if "CRAWLQA_NAV_TIMEOUT_MS" in env:
            values["navigation_timeout_ms"] = int(env["CRAWLQA_NAV_TIMEOUT_MS"])
        if "CRAWLQA_HEADLESS" in env:
            values["headless"] = env["CRAWLQA_HEADLESS"].strip().lower() not in ("0", "false", "no")

        known = {f.name for f in fields(cls)}
        for key, value in overrides.items():
            if key not in known:
                raise TypeError(f"Unknown config option: {key}")
            if value is None and key != "max_retries":
                continue
            values[key] = value
        return cls(base_url=base_url, **values)


def normalize_base_url(url: str) -> str:
    url = url.strip()
    if not url.startswith("http"):
        url = f"https://{url}"
    return url.rstrip("/")
