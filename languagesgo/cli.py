#!/usr/bin/env python3
"""Languages Go CLI - sticker generation for vocabulary cards."""

import logging
import sys

import click

from languagesgo import __version__
from languagesgo.config import load_settings
from languagesgo.gemini.prompt import build_prompt
from languagesgo.models import JobStatus, VocabularyCard
from languagesgo.supabase.client import SupabaseError


def _build_queue(ctx: click.Context, **kwargs):
    from languagesgo.stickers.queue import StickerQueue
    try:
        return StickerQueue.from_settings(ctx.obj["settings"], **kwargs)
    except (SupabaseError, RuntimeError) as e:
        raise click.ClickException(str(e))


def _echo_job(job) -> None:
    click.echo(f"{job.id}: {job.status.value} ({job.word}, {job.language})")
    if job.sticker_url:
        click.echo(f"  sticker: {job.sticker_url}")
    if job.error:
        click.echo(f"  error: {job.error}")


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="YAML settings file")
@click.option("-v", "--verbose", is_flag=True, help="Debug logging")
@click.pass_context
def cli(ctx, config_path, verbose):
    """Languages Go - kawaii sticker generation for vocabulary cards."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj["settings"] = load_settings(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))


@cli.command()
@click.argument("word")
@click.option("--category", default="object", help="Card category")
def prompt(word, category):
    """Print the image prompt for a word."""
    click.echo(build_prompt(word, category))


@cli.command()
@click.argument("card_id")
@click.pass_context
def generate(ctx, card_id):
    """Generate a sticker for one card right now."""
    from languagesgo.stickers.integration import determine_rarity

    queue = _build_queue(ctx, autostart=False)
    settings = ctx.obj["settings"]
    row = queue.store.fetch_row(settings.cards_table, card_id)
    if not row:
        raise click.ClickException(f"Card not found: {card_id}")

    card = VocabularyCard.from_row(row)
    click.echo(f"Generating sticker for '{card.word}' [{determine_rarity(card.difficulty)}]...")
    job_id = queue.enqueue(card)
    queue.run_until_idle()
    job = queue.get_job_status(job_id)
    _echo_job(job)
    if job.status is not JobStatus.COMPLETED:
        sys.exit(1)


@cli.command()
@click.argument("card_ids", nargs=-1, required=True)
@click.option("--wait/--no-wait", default=True, help="Wait for the jobs to finish")
@click.pass_context
def enqueue(ctx, card_ids, wait):
    """Queue sticker jobs for existing cards."""
    from languagesgo.stickers.integration import process_new_vocabulary

    queue = _build_queue(ctx)
    settings = ctx.obj["settings"]
    cards = []
    for card_id in card_ids:
        row = queue.store.fetch_row(settings.cards_table, card_id)
        if not row:
            click.echo(f"Skipping unknown card {card_id}", err=True)
            continue
        cards.append(VocabularyCard.from_row(row))

    results = process_new_vocabulary(queue, cards, bucket=settings.bucket)
    for entry in results:
        click.echo(f"{entry['word']}: {entry['status']} {entry.get('job_id', entry.get('error', ''))}")

    if wait:
        queue.wait_idle()
        for entry in results:
            if entry.get("job_id"):
                _echo_job(queue.get_job_status(entry["job_id"]))


@cli.command()
@click.option("--limit", type=int, default=50, help="Maximum cards to queue")
@click.option("--dry-run", is_flag=True, help="List cards without generating")
@click.pass_context
def backfill(ctx, limit, dry_run):
    """Generate stickers for cards that have no artwork."""
    from languagesgo.stickers.integration import queue_cards_missing_stickers

    settings = ctx.obj["settings"]
    queue = _build_queue(ctx, autostart=False)

    if dry_run:
        rows = queue.store.select(
            settings.cards_table,
            or_="(artwork_url.is.null,artwork_url.eq.)",
            order="created_at.desc",
            limit=limit,
        )
        for row in rows:
            click.echo(f"{row['id']}: {row.get('word')} ({row.get('language')})")
        click.echo(f"{len(rows)} card(s) without stickers")
        return

    results = queue_cards_missing_stickers(
        queue, queue.store, cards_table=settings.cards_table, limit=limit, bucket=settings.bucket
    )
    if not results:
        click.echo("All cards already have stickers!")
        return

    queue.run_until_idle()

    successful = failed = 0
    for entry in results:
        job = queue.get_job_status(entry["job_id"]) if entry.get("job_id") else None
        if job is not None and job.status is JobStatus.COMPLETED:
            successful += 1
        else:
            failed += 1
            click.echo(f"  failed: {entry['word']} - {job.error if job else entry.get('error')}")

    click.echo(f"Total processed: {len(results)}")
    click.echo(f"Successful: {successful}")
    click.echo(f"Failed: {failed}")
    if failed:
        sys.exit(1)


@cli.command()
@click.argument("job_id")
@click.pass_context
def status(ctx, job_id):
    """Show a job's status from the jobs table."""
    from languagesgo.stickers.mirror import JobMirror
    from languagesgo.supabase.client import SupabaseClient

    settings = ctx.obj["settings"]
    try:
        store = SupabaseClient(settings.supabase_url, settings.supabase_key, timeout=settings.http_timeout_s)
    except SupabaseError as e:
        raise click.ClickException(str(e))
    job = JobMirror(store, settings.jobs_table).fetch(job_id)
    if job is None:
        raise click.ClickException(f"Job not found: {job_id}")
    _echo_job(job)


@cli.command()
@click.option("--run/--no-run", default=True, help="Process adopted jobs before exiting")
@click.pass_context
def reconcile(ctx, run):
    """Recover unfinished jobs left by a previous process."""
    queue = _build_queue(ctx, autostart=False)
    counts = queue.reconcile()
    click.echo(
        f"Adopted {counts['adopted']} pending job(s), "
        f"failed {counts['interrupted']} interrupted job(s)"
    )
    if run and counts["adopted"]:
        queue.run_until_idle()
        click.echo("Done.")


if __name__ == "__main__":
    cli()
