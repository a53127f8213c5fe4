"""Conversation session: runs turns and keeps the cross-turn history."""

from __future__ import annotations

import asyncio

from toolvote.config import Settings
from toolvote.core.machine import run_turn
from toolvote.core.services import LLMService, MachineDeps
from toolvote.core.types import InputSource, TurnInput, TurnOutput
from toolvote.history import TurnHistory
from toolvote.models.base import BaseChatModel
from toolvote.status import StatusSource
from toolvote.tools.base import ProgressCallback
from toolvote.tools.boundary import ToolBoundary
from toolvote.util.logging import get_logger

logger = get_logger(__name__)


class Session:
    def __init__(
        self,
        model: BaseChatModel,
        boundary: ToolBoundary,
        settings: Settings | None = None,
        status: StatusSource | None = None,
        history: TurnHistory | None = None,
        shutdown: asyncio.Event | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.model = model
        self.settings = settings or Settings()
        self.history = history if history is not None else TurnHistory()
        self.shutdown = shutdown or asyncio.Event()
        self.deps = MachineDeps(
            llm=LLMService(
                model,
                timeout_seconds=self.settings.generation_timeout_seconds,
                max_attempts=self.settings.llm_max_attempts,
                shutdown=self.shutdown,
            ),
            boundary=boundary,
            settings=self.settings,
            status=status,
            history=self.history,
            shutdown=self.shutdown,
            on_progress=on_progress,
        )
        self.last_response = ""

    async def run(
        self,
        text: str,
        previous_response: str | None = None,
        source: InputSource = InputSource.KEYBOARD,
    ) -> TurnOutput:
        """Run one turn and record it in the history."""
        turn = TurnInput(
            user_input=text,
            previous_response=self.last_response if previous_response is None else previous_response,
            source=source,
        )
        output = await run_turn(turn, self.deps)
        if output.interpreted_query:
            self.history.record_interpreted(output.interpreted_query)
        self.history.append(text, output.tool_outcomes, output.response)
        self.last_response = output.response
        return output

    async def aclose(self) -> None:
        await self.model.aclose()
