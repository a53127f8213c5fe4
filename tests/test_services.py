import asyncio

import pytest

from toolvote.core.machine import CANCELLED_RESPONSE, run_turn
from toolvote.core.services import LLMService
from toolvote.core.types import TurnBranch, TurnInput
from toolvote.errors import GenerationCancelled
from toolvote.models.base import BaseChatModel, ModelResponse


class SlowModel(BaseChatModel):
    def __init__(self, delay: float = 5.0) -> None:
        self.delay = delay
        self.started = 0

    async def generate(self, messages, tools=None, sampling=None):
        self.started += 1
        await asyncio.sleep(self.delay)
        return ModelResponse(text="too late")


MESSAGES = [{"role": "user", "content": "turn on the lights"}]


def test_timed_out_generation_is_no_sample():
    model = SlowModel()
    llm = LLMService(model, timeout_seconds=0.05)
    assert asyncio.run(llm.sample(MESSAGES)) is None
    assert model.started == 1


def test_shutdown_during_generation_raises_cancelled():
    async def main():
        shutdown = asyncio.Event()
        llm = LLMService(SlowModel(), timeout_seconds=5, shutdown=shutdown)
        asyncio.get_running_loop().call_later(0.05, shutdown.set)
        await llm.sample(MESSAGES)

    with pytest.raises(GenerationCancelled):
        asyncio.run(main())


def test_shutdown_during_generation_ends_turn_with_error(make_deps):
    model = SlowModel()
    deps = make_deps(model)

    async def main():
        deps.shutdown = asyncio.Event()
        deps.llm.shutdown = deps.shutdown
        asyncio.get_running_loop().call_later(0.05, deps.shutdown.set)
        return await run_turn(TurnInput("turn on the lights"), deps)

    output = asyncio.run(main())
    assert output.branch is TurnBranch.ERROR
    assert output.response == CANCELLED_RESPONSE
    assert model.started == 1
