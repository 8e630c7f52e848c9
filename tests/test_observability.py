from __future__ import annotations

import json
import logging

from command_console.app import build_runtime
from command_console.config import ConsoleConfig
from command_console.settings.store import InMemorySettingsStore
from command_console.util.observability import (
    EventLogger,
    MetricsCollector,
    create_observability_manager,
)


def test_metrics_collector_snapshot() -> None:
    metrics = MetricsCollector()
    metrics.increment("command.started", 2)
    metrics.record_duration("command.ng", 1.5)
    metrics.record_duration("command.ng", 0.5)

    snapshot = metrics.snapshot()

    assert snapshot["counters"]["command.started"] == 2
    assert snapshot["durations"]["command.ng"]["count"] == 2.0
    assert snapshot["durations"]["command.ng"]["avg_s"] == 1.0


def test_event_logger_emits_json(caplog) -> None:
    logger = EventLogger("test.events", context={"console": "desktop"})
    caplog.set_level(logging.INFO, logger="test.events")

    logger.log("command.started", {"id": "ng-1", "pid": 42})

    assert caplog.records
    payload = json.loads(caplog.records[-1].message)
    assert payload["event_type"] == "command.started"
    assert payload["payload"]["pid"] == 42
    assert payload["context"] == {"console": "desktop"}


def test_manager_counts_logged_events(caplog) -> None:
    manager = create_observability_manager()
    caplog.set_level(logging.INFO, logger="command_console.events")

    manager.log_event("command.stopped", {"id": "ng-1"})
    with manager.track_duration("command.ng"):
        pass

    snapshot = manager.metrics.snapshot()
    assert snapshot["counters"]["command.stopped"] == 1
    assert snapshot["durations"]["command.ng"]["count"] == 1.0
    assert "command.stopped" in caplog.records[-1].message


def test_runtime_events_carry_process_mode(caplog, factory) -> None:
    caplog.set_level(logging.INFO, logger="command_console.events")

    with build_runtime(
        ConsoleConfig(), process_factory=factory, settings=InMemorySettingsStore()
    ) as runtime:
        runtime.observability.log_event("command.removed", {"count": 0})

    payload = json.loads(caplog.records[-1].message)
    assert payload["context"] == {"mode": "fake"}
