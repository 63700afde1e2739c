#!/usr/bin/env python3
"""
Collection Commands for the DropForge CLI

Publish asset manifests, inspect collections and their slots, list a
creator's collections, and build or resolve share links.
"""

import asyncio
from typing import Optional, Tuple

import click

from nft.manifest import AssetPayload, ManifestBuilder, PublishProgress
from nft.slots import SlotResolver

from cli.context import CLIContext, handle_cli_error, pass_context


def _progress_printer(progress: PublishProgress):
    click.echo(progress.message, err=True)


@click.command('publish')
@click.argument('files', nargs=-1, required=True, type=click.Path(exists=True, dir_okay=False))
@click.option('--concurrency', type=click.IntRange(min=1), help='Parallel asset uploads')
@pass_context
@handle_cli_error
def publish(ctx: CLIContext, files: Tuple[str, ...], concurrency: Optional[int]):
    """
    Upload assets and a verified manifest to the blob store.

    FILES are uploaded in the given order; position N becomes slot N.
    """
    assets = [AssetPayload.from_file(path) for path in files]
    blob_store = ctx.blob_store()
    builder = ManifestBuilder(
        blob_store,
        on_progress=_progress_printer,
        max_concurrency=concurrency or int(ctx.config.get('publish.max_concurrency', 1))
    )

    try:
        manifest_ref = asyncio.run(builder.publish(assets))
    finally:
        ctx.close()

    ctx.output({
        "manifest_ref": manifest_ref,
        "manifest_url": blob_store.url_for(manifest_ref),
        "assets": len(assets)
    })


@click.command('show')
@click.argument('collection_id')
@pass_context
@handle_cli_error
def show(ctx: CLIContext, collection_id: str):
    """Show a collection and its mint progress."""
    registry = ctx.registry()
    try:
        snapshot = asyncio.run(registry.read(collection_id))
    finally:
        ctx.close()

    collection = snapshot.collection
    data = collection.to_dict()
    data.update({
        "price_sui": collection.price_display,
        "remaining": collection.remaining,
        "manifest_size": len(snapshot.manifest),
        "fetched_at": snapshot.fetched_at.isoformat()
    })
    if snapshot.manifest_mismatch:
        data["warning"] = "manifest size differs from supply cap"
    ctx.output(data)


@click.command('slots')
@click.argument('collection_id')
@click.option('--available-only', is_flag=True, help='Only list slots that can still be minted')
@pass_context
@handle_cli_error
def slots(ctx: CLIContext, collection_id: str, available_only: bool):
    """List the slots of a collection."""
    registry = ctx.registry()
    try:
        snapshot = asyncio.run(registry.read(collection_id))
    finally:
        ctx.close()

    resolved = SlotResolver().slots(snapshot)
    if available_only:
        resolved = [slot for slot in resolved if slot.available]
    ctx.output([slot.to_dict() for slot in resolved])


@click.command('collections')
@click.argument('creator')
@pass_context
@handle_cli_error
def collections(ctx: CLIContext, creator: str):
    """List collections created by CREATOR, newest first."""
    registry = ctx.registry()
    try:
        summaries = asyncio.run(registry.list_by_creator(creator))
    finally:
        ctx.close()

    ctx.output([s.model_dump() for s in summaries])


@click.command('share')
@click.argument('collection_id')
@click.argument('index', type=click.IntRange(min=0))
@pass_context
@handle_cli_error
def share(ctx: CLIContext, collection_id: str, index: int):
    """Build a mint link for slot INDEX (0-based) and its QR code URL."""
    service = ctx.share_service()
    url = service.encode(collection_id, index)
    ctx.output({
        "number": index + 1,
        "url": url,
        "qr_code_url": service.qr_code_url(url)
    })


@click.command('resolve-link')
@click.argument('url')
@click.option('--manifest-length', type=click.IntRange(min=0),
              help='Reject indices past the end of a manifest of this size')
@pass_context
@handle_cli_error
def resolve_link(ctx: CLIContext, url: str, manifest_length: Optional[int]):
    """Decode the collection and slot a mint link points at."""
    service = ctx.share_service()
    intent = service.decode(url, manifest_length)
    ctx.output({
        "collection_id": service.collection_id_from(url),
        "valid": intent.valid,
        "index": intent.index,
        "number": intent.index + 1 if intent.valid else None
    })
