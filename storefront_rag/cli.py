"""
Main CLI for the storefront RAG pipeline.

Subcommands: chunk (preview chunking), index (fetch + embed + upsert),
chat (interactive session against the index).
"""

import json
import logging
import sys
import uuid
from pathlib import Path

import click

from storefront_rag.config import load_config, ConfigError
from storefront_rag.audit.logger import get_audit_logger
from storefront_rag.retriever.chunker import (
    DEFAULT_ENCODING,
    InvalidArgument,
    STRATEGIES,
    TextChunker,
    get_token_counter,
)


@click.group()
@click.version_option(package_name='storefront-rag')
@click.option('-v', '--verbose', is_flag=True, help='Enable debug logging')
def cli(verbose):
    """Storefront RAG - index store content and chat over it."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )


@cli.command('chunk')
@click.argument('file', type=click.Path(exists=True, dir_okay=False))
@click.option('--strategy', type=click.Choice(sorted(STRATEGIES)), default='char',
              help='Split strategy')
@click.option('--max-size', type=int, default=None, help='Chunk budget (chars or tokens)')
@click.option('--overlap', type=int, default=0, help='Overlap budget (token-overlap only)')
@click.option('--encoding', default=DEFAULT_ENCODING, help='tiktoken encoding for token-overlap')
@click.option('--format', 'output_format', type=click.Choice(['text', 'json']), default='text')
def chunk_command(file, strategy, max_size, overlap, encoding, output_format):
    """Chunk a text file and print the chunks."""
    text = Path(file).read_text(encoding='utf-8')
    measure = get_token_counter(encoding) if strategy == 'token-overlap' else None

    try:
        chunker = TextChunker(split_strategy=strategy, max_size=max_size,
                              overlap=overlap, measure=measure)
        chunks = chunker.chunk_text(text)
    except InvalidArgument as e:
        click.echo(click.style(f"✗ {e}", fg="red"), err=True)
        sys.exit(1)

    if output_format == 'json':
        click.echo(json.dumps(
            [{'index': i, 'text': c} for i, c in enumerate(chunks)],
            indent=2, ensure_ascii=False
        ))
        return

    unit = 'tokens' if measure else 'chars'
    for i, piece in enumerate(chunks):
        size = measure(piece) if measure else len(piece)
        click.echo(click.style(f"[{i}] ({size} {unit})", fg="cyan"))
        click.echo(piece)
        click.echo()
    click.echo(click.style(f"✓ {len(chunks)} chunk(s)", fg="green"))


@cli.command('index')
@click.option('--config', type=click.Path(exists=True), help='Config file path')
def index_command(config):
    """Fetch all configured sources and index them."""
    from storefront_rag.rag.indexer import run_indexing

    try:
        cfg = load_config(config)
        audit = get_audit_logger(cfg.get_audit_config())
        stats = run_indexing(cfg.data, audit_logger=audit)
    except ConfigError as e:
        click.echo(click.style(f"✗ Config error: {e}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"✗ Error: {e}", fg="red"), err=True)
        sys.exit(1)

    click.echo(click.style(
        f"✓ Indexed {stats.documents} document(s) as {stats.chunks} chunk(s) "
        f"in {stats.batches} batch(es)",
        fg="green"
    ))


@cli.command('chat')
@click.option('--config', type=click.Path(exists=True), help='Config file path')
@click.option('--session', 'session_id', default=None, help='Conversation id')
def chat_command(config, session_id):
    """Chat with the storefront assistant (Ctrl-D to quit)."""
    from storefront_rag.rag.engine import ChatRequestError, build_chat_engine

    try:
        cfg = load_config(config)
        engine = build_chat_engine(cfg.data, audit_logger=get_audit_logger(cfg.get_audit_config()))
    except ConfigError as e:
        click.echo(click.style(f"✗ Config error: {e}", fg="red"), err=True)
        sys.exit(1)
    except Exception as e:
        click.echo(click.style(f"✗ Error: {e}", fg="red"), err=True)
        sys.exit(1)

    session_id = session_id or uuid.uuid4().hex
    click.echo(click.style(f"Session {session_id}", fg="blue"))

    while True:
        try:
            message = click.prompt(click.style("you", fg="cyan"), prompt_suffix='> ')
        except (EOFError, click.Abort):
            click.echo()
            break

        try:
            reply = engine.reply(session_id, message)
        except ChatRequestError as e:
            click.echo(click.style(f"✗ {e}", fg="yellow"), err=True)
            continue
        except Exception as e:
            logging.getLogger(__name__).exception("Chat turn failed")
            click.echo(click.style(f"✗ Sorry, something went wrong: {e}", fg="red"), err=True)
            continue

        click.echo(click.style("bot> ", fg="green") + reply)


if __name__ == '__main__':
    cli()
