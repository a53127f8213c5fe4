"""Shared construction helpers for models, tools and sessions."""

from __future__ import annotations

import asyncio
import json

from toolvote.config import Settings
from toolvote.models.base import BaseChatModel
from toolvote.models.mock import MockChatModel
from toolvote.models.openai_compat import OpenAICompatChatModel
from toolvote.session import Session
from toolvote.status import StatusSource
from toolvote.tools.boundary import RegistryToolBoundary
from toolvote.tools.builtins import CalculatorTool, UnitConvertTool
from toolvote.tools.registry import ToolRegistry


def build_model(settings: Settings, use_mock: bool = False) -> BaseChatModel:
    if use_mock or not settings.openai_api_key:
        return MockChatModel()
    extra_headers = None
    if settings.openai_extra_headers:
        extra_headers = json.loads(settings.openai_extra_headers)
    return OpenAICompatChatModel(
        base_url=settings.openai_base_url,
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=settings.openai_timeout_seconds,
        extra_headers=extra_headers,
        force_chatcompletions_path=settings.openai_force_chatcompletions_path,
    )


def build_registry() -> ToolRegistry:
    registry = ToolRegistry()
    registry.register(CalculatorTool())
    registry.register(UnitConvertTool())
    return registry


def build_session(
    settings: Settings,
    model: BaseChatModel | None = None,
    registry: ToolRegistry | None = None,
    *,
    status: StatusSource | None = None,
    shutdown: asyncio.Event | None = None,
) -> Session:
    return Session(
        model=model or build_model(settings),
        boundary=RegistryToolBoundary(registry or build_registry()),
        settings=settings,
        status=status,
        shutdown=shutdown,
    )
