from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from faultline.adapters.base import Adapter
from faultline.adapters.registry import AdapterRegistry
from faultline.config import FaultlineConfig
from faultline.engine.types import Excluded, ResourceExhausted, ValidationError
from faultline.normalizer import Clock, format_timestamp, normalize_record, utc_now
from faultline.paths import PathNormalizer
from faultline.result import UnifiedResult

logger = logging.getLogger(__name__)

AdapterCall = Callable[[], Awaitable[Any]]

# What a converter may raise on tool output it does not understand.
_CONVERTER_ERRORS = (TypeError, ValueError, KeyError, AttributeError, IndexError)


@dataclass(frozen=True, slots=True)
class AdapterBatch:
    """Raw output of one adapter call, or the sentinel for a failed/timed-out one."""

    tool: str
    raw: Any = None
    failed: bool = False
    error: str | None = None


@dataclass(frozen=True, slots=True)
class IngestReport:
    tool: str
    received: int = 0
    accepted: int = 0
    rejected: int = 0
    excluded: int = 0
    dropped: int = 0
    failed: bool = False
    error: str | None = None


class CorrelationCore:
    """
    One analysis run: config, adapters, path normalizer and the result.

    All findings enter through `ingest*` on the calling thread, one batch at a
    time. Construct a new core for every run; nothing is shared between runs.
    """

    def __init__(
        self,
        config: FaultlineConfig,
        *,
        registry: AdapterRegistry | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.config = config
        self.registry = registry if registry is not None else AdapterRegistry.with_builtins(config.plugins)
        self.paths = PathNormalizer(config.project_root)
        self.clock = clock
        self.result = UnifiedResult(config, metadata={"adapters": {}, "adapterFailures": []})

    def ingest(self, tool: str, raw: Any) -> IngestReport:
        """Convert raw tool output with the named adapter and ingest every finding."""

        adapter = self.registry.get(tool)
        try:
            records = list(adapter.to_findings(raw))
        except _CONVERTER_ERRORS as exc:
            return self._record_failure(adapter.name, f"{type(exc).__name__}: {exc}")
        return self.ingest_records(adapter, records)

    def ingest_batch(self, batch: AdapterBatch) -> IngestReport:
        if batch.failed:
            return self._record_failure(batch.tool, batch.error or "adapter failed")
        return self.ingest(batch.tool, batch.raw)

    def ingest_records(self, adapter: Adapter | str, records: Iterable[Any]) -> IngestReport:
        if isinstance(adapter, str):
            adapter = self.registry.get(adapter)

        received = accepted = rejected = excluded = dropped = 0
        for record in records:
            received += 1
            normalized = normalize_record(record, adapter=adapter, paths=self.paths, clock=self.clock)
            if isinstance(normalized, ValidationError):
                self.result.record_rejection(normalized)
                rejected += 1
                continue
            outcome = self.result.add_issue(normalized)
            if outcome is None:
                accepted += 1
            elif isinstance(outcome, Excluded):
                excluded += 1
            elif isinstance(outcome, ResourceExhausted):
                dropped += 1
            else:
                rejected += 1

        report = IngestReport(
            tool=adapter.name,
            received=received,
            accepted=accepted,
            rejected=rejected,
            excluded=excluded,
            dropped=dropped,
        )
        self._record_adapter(report)
        logger.info(
            "%s: %d finding(s) accepted, %d rejected, %d excluded",
            adapter.name,
            accepted,
            rejected,
            excluded,
        )
        return report

    def run(self, file_contents: Mapping[str, str] | None = None) -> UnifiedResult:
        """Deduplicate, correlate and rank everything ingested so far."""

        result = self.result
        result.deduplicate_issues()
        result.build_correlation_groups(file_contents)
        result.generate_hotspots()
        result.metadata["generatedAt"] = format_timestamp(self.clock())
        logger.info(
            "%d issue(s) in %d file(s): %d correlation group(s), %d hotspot(s)",
            len(result.issues),
            len(result.file_metrics),
            len(result.correlation_groups),
            len(result.hotspots),
        )
        return result

    def _record_adapter(self, report: IngestReport) -> None:
        adapters: dict[str, Any] = self.result.metadata["adapters"]
        entry = adapters.setdefault(
            report.tool,
            {"received": 0, "accepted": 0, "rejected": 0, "excluded": 0, "dropped": 0},
        )
        for key in ("received", "accepted", "rejected", "excluded", "dropped"):
            entry[key] += getattr(report, key)

    def _record_failure(self, tool: str, error: str) -> IngestReport:
        logger.warning("Adapter %s failed: %s", tool, error)
        self.result.metadata["adapterFailures"].append({"tool": tool, "error": error})
        return IngestReport(tool=tool, failed=True, error=error)


async def gather_batches(sources: Mapping[str, AdapterCall], *, timeout: float) -> list[AdapterBatch]:
    """
    Run adapter calls concurrently, each bounded by `timeout` seconds.

    A call that times out or raises yields a failed `AdapterBatch` instead of
    propagating, so one broken tool never sinks the run. Batches come back in
    the order of `sources`.
    """

    async def _one(tool: str, call: AdapterCall) -> AdapterBatch:
        try:
            raw = await asyncio.wait_for(call(), timeout=timeout)
        except TimeoutError:
            return AdapterBatch(tool=tool, failed=True, error=f"timed out after {timeout:g}s")
        return AdapterBatch(tool=tool, raw=raw)

    tools = list(sources)
    outcomes = await asyncio.gather(*(_one(tool, sources[tool]) for tool in tools), return_exceptions=True)

    batches: list[AdapterBatch] = []
    for tool, outcome in zip(tools, outcomes, strict=True):
        if isinstance(outcome, asyncio.CancelledError):
            raise outcome
        if isinstance(outcome, BaseException):
            batches.append(AdapterBatch(tool=tool, failed=True, error=f"{type(outcome).__name__}: {outcome}"))
        else:
            batches.append(outcome)
    return batches
