"""tieredmemory CLI - server and maintenance commands."""
import asyncio
import json

import click

from scitrera_app_framework import get_variables


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logs")
def cli(verbose: bool):
    """tieredmemory - Tiered conversational memory for LLM-powered assistants."""
    v = get_variables()  # get variables instance prior to preconfigure() call
    if verbose:
        v.set("LOGGING_LEVEL", "DEBUG")


@cli.command()
@click.option("--host", default=None, help="Host to bind to")
@click.option("--port", default=None, type=int, help="Port to bind to")
def serve(host: str, port: int):
    """Start the HTTP REST API server."""
    import uvicorn
    from tieredmemory.config import (
        TIEREDMEMORY_SERVER_HOST, TIEREDMEMORY_SERVER_PORT, DEFAULT_TIEREDMEMORY_SERVER_HOST,
        DEFAULT_TIEREDMEMORY_SERVER_PORT,
    )
    from tieredmemory.dependencies import preconfigure
    from tieredmemory.lifecycle.fastapi import fastapi_app_factory

    # preconfigure ensures that plugins are registered
    v, _ = preconfigure()
    if host is None:
        host = v.environ(TIEREDMEMORY_SERVER_HOST, default=DEFAULT_TIEREDMEMORY_SERVER_HOST)
    if port is None:
        port = v.environ(TIEREDMEMORY_SERVER_PORT, default=DEFAULT_TIEREDMEMORY_SERVER_PORT, type_fn=int)

    app = fastapi_app_factory(v)

    click.echo(f"Starting tieredmemory server on {host}:{port}")
    uvicorn.run(
        app,
        host=host,
        port=port,
        reload=False,
    )


@cli.command()
def version():
    """Show version information."""
    from tieredmemory import __version__
    click.echo(f"tieredmemory v{__version__}")


@cli.command()
@click.option("--format", "output_format", default="text", type=click.Choice(["text", "json"]))
def info(output_format: str):
    """Show system information and configuration."""
    from tieredmemory.dependencies import initialize_sync

    v = get_variables()
    v.set("LOGGING_LEVEL", "ERROR")  # suppress logs during info output
    v = initialize_sync(v)
    settings = {
        k.removeprefix('TIEREDMEMORY_'): '(redacted)' if any(
            'max_tokens' not in k.lower() and x in k.lower()
            for x in ('password', 'secret', 'credentials', 'token', 'key',)
        ) else val
        for (k, val) in sorted(v.export_all_variables().items(), key=lambda kv: kv[0])
        if k.startswith('TIEREDMEMORY')
    }

    if output_format == "json":
        click.echo(json.dumps(settings, indent=2, default=str))
    else:
        click.echo("tieredmemory Configuration")
        click.echo("=" * 40)
        for k, val in settings.items():
            click.echo(f"{k}: {val}")
        click.echo("")


async def _run_with_engine(operation):
    """Start services, run ``operation(engine)`` and shut down again."""
    from tieredmemory.dependencies import initialize_services, shutdown_services
    from tieredmemory.services.engine import get_memory_engine

    v = await initialize_services(get_variables())
    try:
        return await operation(get_memory_engine(v))
    finally:
        await shutdown_services(v)


@cli.command()
@click.option('--user', '-u', 'user_id', default=None, help='User whose conversation to consolidate')
@click.option('--conversation', '-c', 'conversation_id', default=None, help='Conversation to consolidate')
@click.option('--batch-size', default=None, type=int, help='Pending conversations per run')
def consolidate(user_id, conversation_id, batch_size):
    """Consolidate one conversation, or every idle pending conversation."""
    from tieredmemory.exceptions import MemoryEngineError

    if (user_id is None) != (conversation_id is None):
        raise click.UsageError("--user and --conversation must be given together")

    async def operation(engine):
        if user_id is not None:
            return await engine.consolidate(user_id, conversation_id)
        return await engine.consolidate_pending(batch_size=batch_size)

    try:
        result = asyncio.run(_run_with_engine(operation))
    except MemoryEngineError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(result.to_dict(), indent=2))


@cli.command()
@click.option('--user', '-u', 'user_id', default=None, help='Decay a single user (default: all users)')
@click.option('--cleanup', 'run_cleanup', is_flag=True, help='Also archive unused and purge expired memories')
def decay(user_id, run_cleanup):
    """Recompute importance and archive forgotten memories."""
    from tieredmemory.exceptions import MemoryEngineError

    async def operation(engine):
        if user_id is not None:
            output = {'decay': (await engine.decay(user_id)).to_dict()}
        else:
            output = {'decay': (await engine.decay_all_users()).to_dict()}
        if run_cleanup:
            output['cleanup'] = (await engine.cleanup()).to_dict()
        return output

    try:
        output = asyncio.run(_run_with_engine(operation))
    except MemoryEngineError as e:
        click.echo(f"Error: {e.message}", err=True)
        raise SystemExit(1)
    click.echo(json.dumps(output, indent=2))


if __name__ == "__main__":
    cli()
