"""Unit tests for formhand.engine.vision_driver — response parsing and input replay."""

from __future__ import annotations

import json
from types import SimpleNamespace

import pytest

from formhand.engine.cost_tracker import BudgetExceededError, CostTracker
from formhand.engine.protocols import AutomationDriver, GuiCommand
from formhand.engine.vision_driver import AgentDecision, VisionDriver
from formhand.models import MODELS


class FakeMouse:
    def __init__(self, log: list[str], fail: Exception | None = None) -> None:
        self._log = log
        self._fail = fail

    def click(self, x, y):
        if self._fail is not None:
            raise self._fail
        self._log.append(f"click:{x},{y}")


class FakeKeyboard:
    def __init__(self, log: list[str]) -> None:
        self._log = log

    def type(self, text, delay=0):
        self._log.append(f"type:{text}")

    def press(self, key):
        self._log.append(f"press:{key}")


class FakePage:
    def __init__(self, mouse_error: Exception | None = None) -> None:
        self.log: list[str] = []
        self.mouse = FakeMouse(self.log, mouse_error)
        self.keyboard = FakeKeyboard(self.log)

    def screenshot(self, type="png"):
        return b"\x89PNG fake"


class FakeMessages:
    def __init__(self, text: str, error: Exception | None = None) -> None:
        self.text = text
        self.error = error
        self.requests: list[dict] = []

    def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(
            content=[SimpleNamespace(type="text", text=self.text)],
            usage=SimpleNamespace(input_tokens=1500, output_tokens=100),
        )


def _driver(page, text="", error=None, tracker=None) -> tuple[VisionDriver, FakeMessages]:
    driver = VisionDriver(page, cost_tracker=tracker or CostTracker(per_run_usd=10.0), typing_delay_ms=0)
    messages = FakeMessages(text, error)
    driver._client = SimpleNamespace(messages=messages)
    return driver, messages


# ---------------------------------------------------------------------------
# 1. parse_response()
# ---------------------------------------------------------------------------

class TestParseResponse:

    def test_plain_json(self):
        decision = VisionDriver.parse_response('{"action": "click", "x": 100, "y": "200", "reasoning": "r"}')
        assert decision.action == "click"
        assert (decision.x, decision.y) == (100.0, 200.0)

    def test_code_fence(self):
        raw = '```json\n{"action": "fill", "x": 1, "y": 2, "value": "Ada"}\n```'
        decision = VisionDriver.parse_response(raw)
        assert decision.action == "fill"
        assert decision.value == "Ada"

    def test_json_inside_prose(self):
        raw = 'Here is my answer: {"action": "done", "reasoning": "already set"} hope it helps'
        assert VisionDriver.parse_response(raw).action == "done"

    def test_garbage_is_stuck(self):
        decision = VisionDriver.parse_response("I cannot see the form")
        assert decision.action == "stuck"
        assert "Could not parse" in decision.reasoning

    def test_bad_coordinates_become_none(self):
        decision = AgentDecision.from_dict({"action": "CLICK", "x": "left"})
        assert decision.action == "click"
        assert decision.x is None


# ---------------------------------------------------------------------------
# 2. act()
# ---------------------------------------------------------------------------

class TestAct:

    def test_is_an_automation_driver(self):
        driver = VisionDriver(FakePage())
        assert isinstance(driver, AutomationDriver)
        assert driver.is_stub is False

    def test_fill_decision(self):
        page = FakePage()
        text = json.dumps({"action": "fill", "x": 40, "y": 60, "value": "Ada", "reasoning": "typed"})
        driver, messages = _driver(page, text)
        result = driver.act('Fill ONLY the "First Name" field with "Ada".')
        assert result.success is True
        assert result.cost_usd > 0
        assert page.log == ["click:40.0,60.0", "press:Control+a", "type:Ada", "press:Tab"]
        request = messages.requests[0]
        assert request["model"] == MODELS["act"]
        blocks = request["messages"][0]["content"]
        assert blocks[0]["type"] == "image"
        assert blocks[1]["text"].startswith("Fill ONLY")

    def test_cost_recorded_on_tracker(self):
        tracker = CostTracker(per_run_usd=10.0)
        driver, _ = _driver(FakePage(), '{"action": "done"}', tracker=tracker)
        driver.act("x")
        assert len(tracker.calls) == 1
        assert tracker.calls[0].purpose == "tier3_act"

    def test_stuck_decision_fails(self):
        page = FakePage()
        driver, _ = _driver(page, '{"action": "stuck", "reasoning": "field hidden"}')
        result = driver.act("x")
        assert result.success is False
        assert result.message == "field hidden"
        assert page.log == []

    def test_click_without_coordinates_fails(self):
        driver, _ = _driver(FakePage(), '{"action": "click"}')
        assert driver.act("x").success is False

    def test_api_error_becomes_failure(self):
        driver, _ = _driver(FakePage(), error=ConnectionError("network down"))
        result = driver.act("x")
        assert result.success is False
        assert result.message == "API error: network down"

    def test_budget_exceeded_propagates(self):
        driver, _ = _driver(FakePage(), '{"action": "done"}', tracker=CostTracker(per_run_usd=0.0001))
        with pytest.raises(BudgetExceededError):
            driver.act("x")


# ---------------------------------------------------------------------------
# 3. exec_gui()
# ---------------------------------------------------------------------------

class TestExecGui:

    def test_click(self):
        page = FakePage()
        result = VisionDriver(page).exec_gui(GuiCommand("click", "Degree", x=5, y=6))
        assert result.success is True
        assert page.log == ["click:5,6"]

    def test_type(self):
        page = FakePage()
        assert VisionDriver(page).exec_gui(GuiCommand("type", "Degree", content="Maths")).success is True
        assert page.log == ["type:Maths"]

    def test_click_without_coordinates(self):
        assert VisionDriver(FakePage()).exec_gui(GuiCommand("click", "Degree")).success is False

    def test_unsupported_variant(self):
        result = VisionDriver(FakePage()).exec_gui(GuiCommand("scroll", "Degree"))
        assert result.success is False
        assert "unsupported" in result.message

    def test_non_fatal_error_is_failure(self):
        page = FakePage(mouse_error=TimeoutError("mouse timed out"))
        result = VisionDriver(page).exec_gui(GuiCommand("click", "Degree", x=1, y=1))
        assert result.success is False
        assert result.message == "TimeoutError: mouse timed out"

    def test_fatal_error_propagates(self):
        page = FakePage(mouse_error=RuntimeError("Target closed"))
        with pytest.raises(RuntimeError):
            VisionDriver(page).exec_gui(GuiCommand("click", "Degree", x=1, y=1))
