"""Formhand Vision Driver — Claude-vision automation driver for tier 3.

Implements the AutomationDriver protocol on top of a Playwright page.  For an
``act()`` instruction it takes a screenshot, asks a Claude vision model for a
single JSON decision (click / fill / done / stuck) and carries it out with
the Playwright mouse and keyboard.  ``exec_gui()`` replays a recorded
coordinate click or keystroke sequence without any model call.

Token costs are recorded on a CostTracker; BudgetExceededError propagates
to the caller.
"""

from __future__ import annotations

import base64
import dataclasses
import json
import logging
import re
from typing import TYPE_CHECKING, Any

from formhand.engine.cost_tracker import CostTracker
from formhand.engine.protocols import ActResult, GuiCommand, is_fatal_browser_error
from formhand.models import DEFAULT_TYPING_DELAY_MS, MODELS

if TYPE_CHECKING:
    from playwright.sync_api import Page

logger = logging.getLogger("formhand.engine.vision_driver")

RESPONSE_SCHEMA = """{
  "observation": "What I see around the target field",
  "action": "click|fill|done|stuck",
  "x": 0,
  "y": 0,
  "value": "Text to type (fill only)",
  "reasoning": "Why this action completes the instruction"
}"""

SYSTEM_PROMPT = f"""You operate a web browser to fill one form field at a time.
You are shown a screenshot of the current viewport and a single instruction.
Choose exactly ONE action that completes the instruction:
- "click": click the option or control at (x, y)
- "fill": click the input at (x, y) and type "value"
- "done": the field already shows the requested value
- "stuck": the field is not visible or the instruction cannot be completed
Coordinates are CSS pixels within the screenshot.  Never touch other fields.

Respond with ONLY valid JSON matching this schema:
{RESPONSE_SCHEMA}"""


@dataclasses.dataclass
class AgentDecision:
    """A single decision returned by the vision model."""

    action: str  # click, fill, done, stuck
    x: float | None
    y: float | None
    value: str
    observation: str
    reasoning: str

    @staticmethod
    def _coerce_float(val: Any) -> float | None:
        try:
            return float(val)
        except (TypeError, ValueError):
            return None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentDecision:
        return cls(
            action=str(data.get("action", "stuck")).strip().lower(),
            x=cls._coerce_float(data.get("x")),
            y=cls._coerce_float(data.get("y")),
            value="" if data.get("value") is None else str(data.get("value")),
            observation=str(data.get("observation", "") or ""),
            reasoning=str(data.get("reasoning", "") or ""),
        )

    @classmethod
    def stuck(cls, reasoning: str) -> AgentDecision:
        return cls(action="stuck", x=None, y=None, value="", observation="", reasoning=reasoning)


class VisionDriver:
    """AutomationDriver backed by Claude vision + Playwright input."""

    is_stub = False

    def __init__(
        self,
        page: Page,
        cost_tracker: CostTracker | None = None,
        model: str = MODELS["act"],
        api_key: str | None = None,
        typing_delay_ms: int = DEFAULT_TYPING_DELAY_MS,
    ) -> None:
        self._page = page
        self._cost_tracker = cost_tracker if cost_tracker is not None else CostTracker()
        self._model = model
        self._api_key = api_key
        self._typing_delay_ms = typing_delay_ms
        self._client: Any = None

    @property
    def cost_tracker(self) -> CostTracker:
        return self._cost_tracker

    def _get_client(self) -> Any:
        """Return the cached Anthropic client, creating it lazily on first use."""
        if self._client is None:
            import anthropic

            # Without an explicit key the SDK reads ANTHROPIC_API_KEY.
            kwargs: dict[str, Any] = {"max_retries": 3, "timeout": 60.0}
            if self._api_key:
                kwargs["api_key"] = self._api_key
            self._client = anthropic.Anthropic(**kwargs)
        return self._client

    # -- AutomationDriver ---------------------------------------------------

    def act(self, instruction: str) -> ActResult:
        screenshot = base64.b64encode(self._page.screenshot(type="png")).decode("ascii")
        client = self._get_client()
        try:
            response = client.messages.create(
                model=self._model,
                max_tokens=512,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {"type": "base64", "media_type": "image/png", "data": screenshot},
                            },
                            {"type": "text", "text": instruction},
                        ],
                    }
                ],
            )
        except Exception as exc:
            logger.error("Anthropic API call failed: %s", exc)
            return ActResult(success=False, message=f"API error: {exc}")

        usage = response.usage
        call = self._cost_tracker.record_call(
            model=self._model,
            input_tokens=usage.input_tokens,
            output_tokens=usage.output_tokens,
            purpose="tier3_act",
        )

        raw_text = "".join(block.text for block in response.content if hasattr(block, "text"))
        decision = self.parse_response(raw_text)
        logger.debug("Vision decision: %s (%s, %s) %s", decision.action, decision.x, decision.y, decision.reasoning)

        success, message = self._perform(decision)
        return ActResult(success=success, message=message, cost_usd=call.cost_usd)

    def exec_gui(self, command: GuiCommand) -> ActResult:
        """Replay a recorded click or keystroke sequence."""
        try:
            if command.variant == "click":
                if command.x is None or command.y is None:
                    return ActResult(success=False, message=f"no coordinates recorded for '{command.target}'")
                self._page.mouse.click(command.x, command.y)
            elif command.variant == "type":
                self._page.keyboard.type(command.content or "", delay=self._typing_delay_ms)
            else:
                return ActResult(success=False, message=f"unsupported GUI variant '{command.variant}'")
        except Exception as exc:
            if is_fatal_browser_error(exc):
                raise
            logger.debug("GUI %s on '%s' failed: %s", command.variant, command.target, exc)
            return ActResult(success=False, message=f"{type(exc).__name__}: {exc}")
        return ActResult(success=True)

    # -- Helpers --------------------------------------------------------------

    def _perform(self, decision: AgentDecision) -> tuple[bool, str]:
        if decision.action == "done":
            return True, decision.reasoning or "field already filled"
        if decision.action == "stuck":
            return False, decision.reasoning or "agent could not complete the instruction"
        if decision.action not in ("click", "fill"):
            return False, f"unsupported action '{decision.action}'"
        if decision.x is None or decision.y is None:
            return False, f"'{decision.action}' decision without coordinates"

        self._page.mouse.click(decision.x, decision.y)
        if decision.action == "fill":
            self._page.keyboard.press("Control+a")
            self._page.keyboard.type(decision.value, delay=self._typing_delay_ms)
            self._page.keyboard.press("Tab")
        return True, decision.reasoning

    @staticmethod
    def _try_extract_json(raw_text: str) -> str | None:
        """Extract a JSON object from text that may contain prose around it."""
        match = re.search(r'\{[^{}]*"action"\s*:\s*"[^"]+?"[^{}]*\}', raw_text, re.DOTALL)
        if match:
            return match.group(0)
        return None

    @staticmethod
    def parse_response(raw_text: str) -> AgentDecision:
        """Parse the model's JSON decision, tolerating markdown code fences.

        Falls back to a stuck decision if parsing fails.
        """
        text = raw_text.strip()
        if text.startswith("```"):
            lines = text.split("\n")
            if lines and lines[0].strip().startswith("```"):
                lines = lines[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()

        try:
            return AgentDecision.from_dict(json.loads(text))
        except (json.JSONDecodeError, AttributeError, TypeError) as exc:
            extracted = VisionDriver._try_extract_json(raw_text)
            if extracted:
                try:
                    return AgentDecision.from_dict(json.loads(extracted))
                except (json.JSONDecodeError, AttributeError, TypeError):
                    pass
            logger.warning("Failed to parse vision response: %s\nRaw: %s", exc, raw_text[:500])
            return AgentDecision.stuck(f"Could not parse AI response as JSON: {exc}")
