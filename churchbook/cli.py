#!/usr/bin/env python3
"""
ChurchBook CLI - Command Line Interface
"""

import asyncio
import json
from typing import Optional

import click
import uvicorn

from churchbook.config.config_loader import load_config
from churchbook.core.exceptions import ChurchBookError
from churchbook.core.logging_manager import setup_logging
from churchbook.main import ChurchBookServices, create_app


def _run(config_path: Optional[str], action):
    """Run an async action against freshly started services"""

    async def runner():
        config = load_config(config_path)
        services = ChurchBookServices(config)
        await services.startup(background=False)
        try:
            await services.connectivity.check()
            return await action(services)
        finally:
            await services.shutdown()

    try:
        return asyncio.run(runner())
    except ChurchBookError as e:
        click.echo(f"Error: {e}", err=True)
        raise click.Abort()


@click.group()
@click.option('--config', 'config_path', default=None, help='Path to the YAML configuration file')
@click.pass_context
def cli(ctx, config_path: Optional[str]):
    """ChurchBook Command Line Interface"""
    ctx.ensure_object(dict)
    ctx.obj['config_path'] = config_path
    setup_logging(load_config(config_path))


@cli.command()
@click.option('--host', default=None, help='Bind address (defaults to api.host)')
@click.option('--port', default=None, type=int, help='Port (defaults to api.port)')
@click.pass_context
def serve(ctx, host: Optional[str], port: Optional[int]):
    """Run the HTTP API with background sync"""
    config = load_config(ctx.obj['config_path'])
    api_config = config.get('api', {})
    uvicorn.run(
        create_app(config),
        host=host or api_config.get('host', '0.0.0.0'),
        port=port or api_config.get('port', 8080),
        log_config=None
    )


@cli.command()
@click.pass_context
def sync(ctx):
    """Replay queued operations against the server"""

    async def action(services):
        return await services.synchronizer.sync()

    result = _run(ctx.obj['config_path'], action)
    click.echo(f"Synced: {result.synced}  Failed: {result.failed}")
    for error in result.errors:
        click.echo(f"  - {error}")

    if not result.success:
        ctx.exit(1)


@cli.command()
@click.pass_context
def refresh(ctx):
    """Pull every collection from the server into the local store"""

    async def action(services):
        return await services.synchronizer.refresh_all()

    refreshed = _run(ctx.obj['config_path'], action)
    for collection, count in refreshed.items():
        click.echo(f"{collection}: {count} records")


@cli.command()
@click.pass_context
def status(ctx):
    """Show connectivity and queue status"""

    async def action(services):
        max_retries = services.synchronizer.max_retries
        return {
            'online': services.connectivity.is_online(),
            'pending': await services.queue.count(),
            'dead_letters': len(await services.queue.list_dead_letters(max_retries)),
            'max_retries': max_retries
        }

    info = _run(ctx.obj['config_path'], action)

    click.echo("ChurchBook Status:")
    click.echo("=" * 30)
    click.echo(f"Remote:       {'online' if info['online'] else 'offline'}")
    click.echo(f"Pending:      {info['pending']}")
    click.echo(f"Dead letters: {info['dead_letters']} (max retries {info['max_retries']})")


@cli.group()
def queue():
    """Inspect and manage the offline queue"""


@queue.command('list')
@click.option('--collection', default=None, help='Only show one entity collection')
@click.option('--json', 'as_json', is_flag=True, help='Print raw JSON')
@click.pass_context
def list_queue(ctx, collection: Optional[str], as_json: bool):
    """List queued operations, oldest first"""

    async def action(services):
        if collection:
            operations = await services.queue.list_by_collection(collection)
        else:
            operations = await services.queue.list_all()
        return operations, services.synchronizer.max_retries

    operations, max_retries = _run(ctx.obj['config_path'], action)

    if as_json:
        click.echo(json.dumps([operation.to_dict() for operation in operations], indent=2, ensure_ascii=False))
        return

    if not operations:
        click.echo("Queue is empty")
        return

    for operation in operations:
        marker = " [dead letter]" if operation.attempt_count >= max_retries else ""
        click.echo(
            f"{operation.id:>5}  {operation.operation_kind.value:<6} {operation.entity_collection:<9} "
            f"{operation.record_id or '-'}  attempts={operation.attempt_count}{marker}"
        )
        if operation.last_error:
            click.echo(f"       last error: {operation.last_error}")


@queue.command('discard')
@click.argument('operation_id', type=int)
@click.option('--force', is_flag=True, help='Discard even if retries remain')
@click.pass_context
def discard(ctx, operation_id: int, force: bool):
    """Discard a dead-lettered operation"""

    async def action(services):
        operation = await services.queue.get(operation_id)
        if operation is None:
            return 'missing'
        if operation.attempt_count < services.synchronizer.max_retries and not force:
            return 'retryable'
        await services.queue.remove(operation_id)
        return 'discarded'

    outcome = _run(ctx.obj['config_path'], action)

    if outcome == 'missing':
        click.echo(f"Operation {operation_id} not found", err=True)
        ctx.exit(1)
    elif outcome == 'retryable':
        click.echo(f"Operation {operation_id} still has retries left; use --force to discard it", err=True)
        ctx.exit(1)
    else:
        click.echo(f"Discarded operation {operation_id}")


if __name__ == '__main__':
    cli()
