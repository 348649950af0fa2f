"""Sequence execution engine.

Runs an ordered list of steps (action / assert / query) against one page,
fail-fast, while console, network and navigation collectors record into a
single `EventLog`.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from ..config import BrowserConfig
from ..http_client import HttpClientError
from ..page import PageError
from ..tools.accessibility import get_overview
from ..tools.actions import ActionParams, perform_action
from ..tools.assertions import check_assertion, describe_condition
from ..tools.base import SmartToolError
from ..tools.screenshot import capture, persist_screenshot
from .collectors import ConsoleCollector, NavigationCollector, NetworkCollector, attached
from .events import EventLog, StepEvent, StepResult

if TYPE_CHECKING:
    from ..page import Page
    from ..sessions import SessionRegistry

logger = logging.getLogger("mcp.agentibility.sequence")

STEP_TYPES = ("action", "assert", "query")
QUERY_TYPES = ("overview", "screenshot")


# ═══════════════════════════════════════════════════════════════════════════════
# Steps
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(frozen=True, slots=True)
class ActionStep:
    action: str
    selector: str | None = None
    value: str | None = None
    url: str | None = None


@dataclass(frozen=True, slots=True)
class AssertStep:
    condition: Any
    timeout_ms: int | None = None


@dataclass(frozen=True, slots=True)
class QueryStep:
    query: str
    params: dict[str, Any] = field(default_factory=dict)


Step = ActionStep | AssertStep | QueryStep


class StepError(Exception):
    """A step that cannot be dispatched (malformed or unknown type)."""


def parse_step(raw: Any) -> Step:
    if not isinstance(raw, dict):
        raise StepError(f"Unknown step type: {type(raw).__name__}")
    kind = raw.get("type")
    if kind == "action":
        value = raw.get("value")
        return ActionStep(
            action=str(raw.get("action") or ""),
            selector=raw.get("selector") or None,
            value=None if value is None else str(value),
            url=raw.get("url") or None,
        )
    if kind == "assert":
        timeout = raw.get("timeout")
        return AssertStep(condition=raw.get("condition"), timeout_ms=int(timeout) if timeout is not None else None)
    if kind == "query":
        params = raw.get("params")
        return QueryStep(query=str(raw.get("query") or ""), params=params if isinstance(params, dict) else {})
    raise StepError(f"Unknown step type: {kind}")


# ═══════════════════════════════════════════════════════════════════════════════
# Options & result
# ═══════════════════════════════════════════════════════════════════════════════


@dataclass(slots=True)
class ConsoleCapture:
    enabled: bool = False
    level: str = "all"
    filter: str | None = None


@dataclass(slots=True)
class NetworkCapture:
    enabled: bool = False
    filter: str | None = None
    include_body: bool = False


@dataclass(slots=True)
class SequenceOptions:
    console: ConsoleCapture = field(default_factory=ConsoleCapture)
    network: NetworkCapture = field(default_factory=NetworkCapture)

    @classmethod
    def from_dict(cls, data: Any) -> SequenceOptions:
        data = data if isinstance(data, dict) else {}
        console = data.get("console") if isinstance(data.get("console"), dict) else {}
        network = data.get("network") if isinstance(data.get("network"), dict) else {}
        return cls(
            console=ConsoleCapture(
                enabled=bool(console.get("enabled")),
                level=str(console.get("level") or "all"),
                filter=console.get("filter") or None,
            ),
            network=NetworkCapture(
                enabled=bool(network.get("enabled")),
                filter=network.get("filter") or None,
                include_body=bool(network.get("includeBody")),
            ),
        )


@dataclass(slots=True)
class SequenceResult:
    success: bool
    completed: int
    total: int
    events: list[dict[str, Any]]
    final_state: dict[str, str]
    failed_at: int | None = None
    failure_reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"success": self.success, "completed": self.completed, "total": self.total}
        if self.failed_at is not None:
            out["failed_at"] = self.failed_at
        if self.failure_reason is not None:
            out["failure_reason"] = self.failure_reason
        out["events"] = self.events
        out["final_state"] = self.final_state
        return out


# ═══════════════════════════════════════════════════════════════════════════════
# Executor
# ═══════════════════════════════════════════════════════════════════════════════


class SequenceExecutor:
    def __init__(self, config: BrowserConfig | None = None) -> None:
        self.config = config or BrowserConfig.from_env()

    def _collectors(self, page: Page, log: EventLog, options: SequenceOptions) -> list[Any]:
        collectors: list[Any] = []
        if options.console.enabled:
            collectors.append(ConsoleCollector(log, options.console.level, options.console.filter))
        if options.network.enabled:
            collectors.append(NetworkCollector(log, options.network.filter, options.network.include_body))
        collectors.append(NavigationCollector(log, page.url()))
        return collectors

    def _action(self, page: Page, step: ActionStep) -> StepResult:
        data = perform_action(page, ActionParams(step.action, step.selector, step.value, step.url))
        return StepResult(success=True, data=data)

    def _assert(self, page: Page, step: AssertStep) -> StepResult:
        timeout_ms = step.timeout_ms if step.timeout_ms is not None else self.config.assert_timeout_ms
        outcome = check_assertion(page, step.condition, timeout_ms)
        if outcome.success:
            return StepResult(success=True, data=outcome.to_dict())
        return StepResult(
            success=False,
            data=outcome.to_dict(),
            error=outcome.error or f"Assertion failed: {describe_condition(step.condition)}",
        )

    def _query(self, page: Page, step: QueryStep) -> StepResult:
        if step.query == "overview":
            return StepResult(success=True, data=get_overview(page))
        if step.query == "screenshot":
            png = capture(page, step.params.get("selector"), bool(step.params.get("fullPage")))
            return StepResult(success=True, data=persist_screenshot(png, self.config.screenshot_dir))
        return StepResult(success=False, error=f"Unknown query type: {step.query}")

    def execute_step(self, page: Page, raw: Any) -> StepResult:
        """Dispatch one step; errors become a failing result."""
        try:
            step = parse_step(raw)
            if isinstance(step, ActionStep):
                return self._action(page, step)
            if isinstance(step, AssertStep):
                return self._assert(page, step)
            return self._query(page, step)
        except SmartToolError as exc:
            return StepResult(success=False, error=exc.reason)
        except Exception as exc:  # noqa: BLE001
            return StepResult(success=False, error=str(exc) or type(exc).__name__)

    def run(self, page: Page, steps: list[Any], options: SequenceOptions | None = None) -> SequenceResult:
        options = options or SequenceOptions()
        log = EventLog()
        completed = 0
        failed_at: int | None = None
        failure_reason: str | None = None

        # Events that arrived before the sequence do not belong to it.
        page.pump_events()

        with attached(page, self._collectors(page, log, options)):
            for index, raw in enumerate(steps):
                started = time.monotonic()
                result = self.execute_step(page, raw)
                result.duration_ms = int((time.monotonic() - started) * 1000)
                page.pump_events()
                log.append(StepEvent(index=index, step=raw, result=result))
                if not result.success:
                    failed_at = index
                    failure_reason = result.error or "Step failed"
                    logger.info("sequence failed at step %d: %s", index, failure_reason)
                    break
                completed += 1

        try:
            title = page.title()
        except (PageError, HttpClientError) as exc:
            logger.debug("final_state title unavailable: %s", exc)
            title = ""
        final_state = {"url": page.url(), "title": title}
        return SequenceResult(
            success=failed_at is None,
            completed=completed,
            total=len(steps),
            events=log.to_list(),
            final_state=final_state,
            failed_at=failed_at,
            failure_reason=failure_reason,
        )


def session_not_found(sessions: SessionRegistry, session_id: str) -> dict[str, Any]:
    return {"error": f"Session '{session_id}' not found", "availableSessions": sessions.list_ids()}


def run_sequence(
    sessions: SessionRegistry,
    session_id: str,
    steps: list[Any],
    options: SequenceOptions | dict[str, Any] | None = None,
    config: BrowserConfig | None = None,
) -> dict[str, Any]:
    session = sessions.get(session_id)
    if session is None:
        return session_not_found(sessions, session_id)
    if not isinstance(options, SequenceOptions):
        options = SequenceOptions.from_dict(options)
    return SequenceExecutor(config or sessions.config).run(session.page, steps, options).to_dict()
