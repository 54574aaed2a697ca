"""
Command-line interface for Rollagent.
"""

import argparse
import asyncio
import sys

import structlog
import uvicorn

from .config import get_settings

structlog.configure(
    processors=[
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True),
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger()

EXIT_WORDS = {"exit", "quit", "/exit", "/quit"}


def main() -> None:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        prog="rollagent",
        description="Rollagent - conversational agent runtime with rolling session memory",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    settings = get_settings()

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP server")
    serve_parser.add_argument("--host", default=settings.host, help="Host to bind to")
    serve_parser.add_argument("--port", type=int, default=settings.port, help="Port to bind to")
    serve_parser.add_argument("--reload", action="store_true", help="Enable auto-reload")

    chat_parser = subparsers.add_parser("chat", help="Chat with the agent in the terminal")
    chat_parser.add_argument("--session", default="cli", help="Session id to continue")

    sessions_parser = subparsers.add_parser("sessions", help="Manage stored sessions")
    sessions_subparsers = sessions_parser.add_subparsers(dest="sessions_command")
    sessions_subparsers.add_parser("list", help="List stored sessions")
    delete_parser = sessions_subparsers.add_parser("delete", help="Delete a session")
    delete_parser.add_argument("session_id", help="Session id to delete")

    config_parser = subparsers.add_parser("config", help="Show configuration")
    config_parser.add_argument("--check", action="store_true", help="Check configuration validity")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        run_server(args.host, args.port, args.reload)
    elif args.command == "chat":
        asyncio.run(chat(args.session))
    elif args.command == "sessions":
        if args.sessions_command == "list":
            asyncio.run(list_sessions())
        elif args.sessions_command == "delete":
            asyncio.run(delete_session(args.session_id))
        else:
            sessions_parser.print_help()
    elif args.command == "config":
        ok = show_config(args.check)
        if not ok:
            sys.exit(1)
    else:
        parser.print_help()


def run_server(host: str, port: int, reload: bool) -> None:
    """Run the FastAPI server."""
    logger.info("Starting Rollagent server", host=host, port=port)

    uvicorn.run(
        "rollagent.api.app:create_app",
        host=host,
        port=port,
        reload=reload,
        factory=True,
        log_level="info",
    )


async def chat(session_id: str) -> None:
    """Interactive REPL bound to one session."""
    from .runtime import build_runtime

    runtime = await build_runtime()
    manager = runtime.session_manager

    print(f"Session '{session_id}'. Type 'exit' to leave.\n")
    try:
        while True:
            try:
                text = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            text = text.strip()
            if not text:
                continue
            if text.lower() in EXIT_WORDS:
                break
            reply = await manager.handle_incoming_message(session_id, text)
            print(f"\nagent> {reply}\n")
    finally:
        await runtime.shutdown()


async def list_sessions() -> None:
    """Print stored sessions."""
    from .storage import create_session_storage

    storage = await create_session_storage(get_settings())
    records = []
    for session_id in await storage.list_ids():
        record = await storage.load(session_id)
        if record is not None:
            records.append(record)
    records.sort(key=lambda r: r.updated_at, reverse=True)

    if not records:
        print("No sessions stored.")
        return

    print(f"\n{'Session':<24} {'Messages':<10} {'Epochs':<8} {'Updated':<20} Title")
    print("-" * 90)

    for record in records:
        updated = record.updated_at.strftime("%Y-%m-%d %H:%M:%S")
        print(
            f"{record.session_id:<24} {len(record.messages):<10} "
            f"{len(record.rolling_summaries):<8} {updated:<20} {record.title or ''}"
        )


async def delete_session(session_id: str) -> None:
    """Delete a stored session."""
    from .storage import create_session_storage

    storage = await create_session_storage(get_settings())
    if await storage.load(session_id) is None:
        logger.error("Cannot delete session", session_id=session_id, error="not found")
        return
    await storage.delete(session_id)
    print(f"Deleted session '{session_id}'.")


def show_config(check: bool) -> bool:
    """Show current configuration; returns False if the check finds errors."""
    settings = get_settings()

    def mask(value: str) -> str:
        if not value:
            return "(not set)"
        return value[:4] + "..." + value[-4:] if len(value) > 10 else "****"

    print("\n=== Rollagent Configuration ===\n")

    print("Server:")
    print(f"  Host: {settings.host}")
    print(f"  Port: {settings.port}")
    print(f"  Debug: {settings.debug}")

    llm_config = settings.get_llm_config()
    print("\nLLM:")
    print(f"  Provider: {llm_config.provider}")
    print(f"  Model: {llm_config.model}")
    print(f"  Base URL: {llm_config.base_url or '(provider default)'}")
    print(f"  Context Window: {llm_config.context_window}")
    print(f"  OpenAI Key: {mask(settings.openai_api_key)}")
    print(f"  Anthropic Key: {mask(settings.anthropic_api_key)}")
    print(f"  OpenRouter Key: {mask(settings.openrouter_api_key)}")
    print(f"  GLM Key: {mask(settings.glm_api_key)}")

    print("\nContext:")
    print(f"  Max Steps: {settings.max_steps}")
    print(f"  Compaction Threshold: {settings.compaction_threshold}")
    print(f"  Rolling Threshold: {settings.rolling_threshold}")
    print(f"  Summarizer: {settings.enable_summarizer}")

    print("\nStorage:")
    print(f"  Backend: {settings.session_backend}")
    if settings.session_backend == "database":
        print(f"  URL: {settings.database_url}")
    else:
        print(f"  Directory: {settings.sessions_dir}")

    print("\nMemory:")
    print(f"  Directory: {settings.memory_dir}")
    print(f"  Profiles: {settings.profiles_dir}")
    print(f"  Memory Service: {settings.memory_service_url if settings.enable_memory_service else '(disabled)'}")

    if not check:
        return True

    print("\n=== Configuration Check ===\n")
    errors = []
    warnings = []

    if llm_config.provider != "ollama" and not llm_config.api_key:
        errors.append(f"No API key configured for provider '{llm_config.provider}'")

    if settings.compaction_threshold >= settings.context_window:
        warnings.append("COMPACTION_THRESHOLD is not below CONTEXT_WINDOW; compaction may never run")

    if not settings.enable_summarizer:
        warnings.append("Summarizer disabled - sessions will not get rolling summaries")

    if errors:
        print("Errors:")
        for e in errors:
            print(f"   - {e}")

    if warnings:
        print("Warnings:")
        for w in warnings:
            print(f"   - {w}")

    if not errors and not warnings:
        print("Configuration looks good!")
    elif not errors:
        print("\nConfiguration is valid (with warnings)")
    else:
        print("\nConfiguration has errors - fix them before starting")

    return not errors


if __name__ == "__main__":
    main()
