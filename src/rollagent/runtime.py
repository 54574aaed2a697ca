"""
Runtime wiring.

Builds the object graph shared by the HTTP server and the interactive CLI:
storage, memory backends, the tool registry, the agent and the session
manager.
"""

from dataclasses import dataclass

import structlog

from .agent import Agent, BackgroundTasks, RollingSummaryManager, SessionManager
from .config import Settings, get_settings
from .llm import create_llm
from .memory import (
    CoreMemoryBuilder,
    MarkdownMemoryStore,
    MemoryServiceClient,
    ProfileManager,
    Summarizer,
)
from .storage import SessionStorage, create_session_storage
from .tools import ToolRegistry, create_memory_tools

logger = structlog.get_logger()


@dataclass
class Runtime:
    """Everything a transport needs to serve conversations."""

    settings: Settings
    session_manager: SessionManager
    storage: SessionStorage
    background: BackgroundTasks

    async def shutdown(self) -> None:
        """Wait for detached work such as archival and memory writes."""
        await self.background.drain()


async def build_runtime(settings: Settings | None = None) -> Runtime:
    """Create a fully wired runtime from settings."""
    settings = settings or get_settings()

    storage = await create_session_storage(settings)
    store = MarkdownMemoryStore(settings.memory_dir)
    profiles = ProfileManager(settings.profiles_dir)
    service = (
        MemoryServiceClient(settings.memory_service_url)
        if settings.enable_memory_service
        else None
    )

    llm = create_llm(settings=settings)
    summarizer = Summarizer(llm, store) if settings.enable_summarizer else None

    registry = ToolRegistry()
    registry.register_all(create_memory_tools(store, profiles, service, storage))

    background = BackgroundTasks()
    agent = Agent(
        llm=llm,
        tool_registry=registry,
        settings=settings,
        summarizer=summarizer,
        background=background,
    )
    rolling = (
        RollingSummaryManager(summarizer, threshold=settings.rolling_threshold)
        if summarizer is not None
        else None
    )
    session_manager = SessionManager(
        agent,
        storage,
        rolling=rolling,
        core_memory_builder=CoreMemoryBuilder(store, profiles, service),
        memory_service=service,
        background=background,
    )

    logger.info(
        "Runtime initialized",
        provider=llm.provider_name,
        model=llm.model,
        session_backend=settings.session_backend,
        tools=registry.list_tools(),
        memory_service=service is not None,
    )
    return Runtime(
        settings=settings,
        session_manager=session_manager,
        storage=storage,
        background=background,
    )
