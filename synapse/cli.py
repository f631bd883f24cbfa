import os

import click


def _override(**values: object) -> None:
    """Push CLI options into SYNAPSE_* env vars so the app lifespan sees them."""
    from synapse.bridge.settings import _get_settings_cached

    for key, value in values.items():
        if value is None:
            continue
        os.environ[f"SYNAPSE_{key.upper()}"] = str(value)
    _get_settings_cached.cache_clear()


def _run_server(host: str | None, port: int | None) -> None:
    import uvicorn

    from synapse.bridge.settings import get_settings

    settings = get_settings()
    uvicorn.run(
        "synapse.bridge.app:app",
        host=host or settings.host,
        port=port or settings.port,
        log_level="warning",  # uvicorn's own logging is intercepted by loguru
        timeout_graceful_shutdown=10,
    )


@click.group()
def main() -> None:
    """Synapse - stream an AI agent's activity to live viewers."""


@main.command()
@click.option("--dir", "watch_dir", default=None, help="Artifact directory (default: conventional location).")
@click.option(
    "--format",
    "source",
    type=click.Choice(["session", "jsonl"]),
    default=None,
    help="Artifact format: Clawdbot session JSON or Claude Code JSONL.",
)
@click.option("--session", "target_session", default=None, help="Follow the newest artifact whose name contains this.")
@click.option("--host", default=None, help="Bind host (default: from SYNAPSE_HOST or 0.0.0.0).")
@click.option("--port", default=None, type=int, help="Bind port (default: from SYNAPSE_PORT or 8080).")
@click.option(
    "--relay", type=click.Choice(["local", "redis"]), default=None, help="Also publish through Redis pub/sub."
)
def serve(
    watch_dir: str | None,
    source: str | None,
    target_session: str | None,
    host: str | None,
    port: int | None,
    relay: str | None,
) -> None:
    """Watch an agent's session directory and stream it."""
    _override(watch_dir=watch_dir, source=source, target_session=target_session, relay=relay)
    _run_server(host, port)


@main.command()
@click.option("--host", default=None, help="Bind host.")
@click.option("--port", default=None, type=int, help="Bind port.")
def demo(host: str | None, port: int | None) -> None:
    """Stream a scripted demo session."""
    _override(source="demo")
    _run_server(host, port)


@main.command()
@click.option("--text", "text_mode", is_flag=True, default=False, help="Treat input as plain text, not JSON lines.")
@click.option("--name", "session_name", default="Live Agent", help="Session name shown to viewers.")
@click.option("--max-content", default=1000, type=int, help="Content length bound for piped events.")
@click.option("--host", default=None, help="Bind host.")
@click.option("--port", default=None, type=int, help="Bind port.")
def pipe(text_mode: bool, session_name: str, max_content: int, host: str | None, port: int | None) -> None:
    """Stream standard input as a live session.

    \b
    Examples:
      my-agent --stream | synapse pipe
      my-agent 2>&1 | synapse pipe --text --name "Build Bot"
    """
    import asyncio

    _override(source="pipe", max_content_len=max_content)
    asyncio.run(_pipe(text_mode=text_mode, session_name=session_name, host=host, port=port))


async def _pipe(*, text_mode: bool, session_name: str, host: str | None, port: int | None) -> None:
    import asyncio

    import uvicorn

    from synapse.bridge.app import app
    from synapse.bridge.pipe import PipeReader
    from synapse.bridge.settings import get_settings

    settings = get_settings()
    config = uvicorn.Config(
        app,
        host=host or settings.host,
        port=port or settings.port,
        log_level="warning",
        timeout_graceful_shutdown=10,
    )
    server = uvicorn.Server(config)
    serving = asyncio.create_task(server.serve())
    while not server.started:
        if serving.done():
            # Startup failed (port in use, bad configuration); surface the error.
            await serving
            return
        await asyncio.sleep(0.05)

    reader = PipeReader(
        app.state.channel,
        text_mode=text_mode,
        session_name=session_name,
        max_content_len=settings.max_content_len,
        grace_period=settings.pipe_grace_period,
    )
    try:
        await reader.run()
    finally:
        server.should_exit = True
        await serving


@main.command()
@click.argument("file", type=click.Path(exists=True, dir_okay=False))
@click.option("--indent", default=2, type=int, help="JSON indentation.")
def parse(file: str, indent: int) -> None:
    """Parse a session file offline and print the resulting Session as JSON."""
    import json
    from pathlib import Path

    from synapse.bridge.batch import UnrecognizedFormatError, parse_session_text
    from synapse.bridge.settings import get_settings

    text = Path(file).read_text(encoding="utf-8", errors="replace")
    try:
        session = parse_session_text(text, max_content_len=get_settings().max_content_len)
    except UnrecognizedFormatError as exc:
        raise click.ClickException(str(exc)) from None
    click.echo(json.dumps(session.to_wire(), indent=indent, ensure_ascii=False))


if __name__ == "__main__":
    main()
