"""
Command-line interface for the Agent Corpus Backend.

Provides CLI commands for training agents, chatting with them and
inspecting configuration.
"""

import asyncio
import json
import shutil
import sys
import tempfile
import uuid
from pathlib import Path
from typing import Optional, Tuple

import click

from .agents import ValidationError
from .config import ConfigManager
from .logging_setup import setup_logging
from .models import ChatMessage, TrainingSources, UploadedFile


def _stage_upload(file_path: str, upload_dir: str, keep_suffix: bool = False) -> UploadedFile:
    """Copy a local file into the upload directory under a random name, like an upload layer would."""
    Path(upload_dir).mkdir(parents=True, exist_ok=True)
    name = uuid.uuid4().hex + (Path(file_path).suffix.lower() if keep_suffix else "")
    staged = Path(upload_dir) / name
    shutil.copyfile(file_path, staged)
    return UploadedFile(path=str(staged), original_name=Path(file_path).name)


def _build_system(ctx):
    from .system import AgentCorpusSystem

    try:
        return AgentCorpusSystem(ctx.obj['config'])
    except ValueError as e:
        raise click.ClickException(str(e))


def _echo_json(data) -> None:
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))


@click.group()
@click.option('--log-level', '-l', default=None, help='Override the configured log level')
@click.pass_context
def cli(ctx, log_level: Optional[str]):
    """Agent Corpus Backend CLI."""
    ctx.ensure_object(dict)

    config_manager = ConfigManager()
    config = config_manager.load_config()
    if log_level:
        config.logging.level = log_level.upper()
    setup_logging(config.logging)

    ctx.obj['config'] = config
    ctx.obj['config_manager'] = config_manager


@cli.command()
@click.argument('agent_id')
@click.option('--document', '-d', 'documents', multiple=True, type=click.Path(exists=True, dir_okay=False),
              help='Document to train on (pdf, docx, doc, csv, txt); repeatable')
@click.option('--audio', '-a', type=click.Path(exists=True, dir_okay=False), help='Audio file to train on')
@click.option('--video', '-v', type=click.Path(exists=True, dir_okay=False), help='Video file to train on')
@click.option('--website', '-w', help='Website URL to crawl')
@click.option('--youtube', '-y', help='YouTube video URL')
@click.pass_context
def train(ctx, agent_id: str, documents: Tuple[str, ...], audio: Optional[str], video: Optional[str],
          website: Optional[str], youtube: Optional[str]):
    """Train an agent from documents, media and URLs."""
    config = ctx.obj['config']
    upload_dir = config.processing.upload_directory
    system = _build_system(ctx)

    sources = TrainingSources(
        documents=[_stage_upload(path, upload_dir) for path in documents],
        audio=_stage_upload(audio, upload_dir) if audio else None,
        video_file_name=Path(_stage_upload(video, upload_dir, keep_suffix=True).path).name if video else None,
        website_url=website,
        youtube_url=youtube,
    )

    try:
        outcome = asyncio.run(system.train(agent_id, sources))
    except ValidationError as e:
        raise click.ClickException(str(e))
    finally:
        system.close()

    _echo_json(outcome.to_dict())
    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.argument('agent_id')
@click.option('--question', '-q', help='Question text')
@click.option('--image', '-i', type=click.Path(exists=True, dir_okay=False), help='Image to ask about')
@click.option('--audio', '-a', type=click.Path(exists=True, dir_okay=False), help='Spoken question')
@click.option('--history', '-h', 'history_file', type=click.Path(exists=True, dir_okay=False),
              help='JSON file with prior turns: [{"role": ..., "text": ...}]')
@click.pass_context
def chat(ctx, agent_id: str, question: Optional[str], image: Optional[str], audio: Optional[str],
         history_file: Optional[str]):
    """Ask a trained agent a question."""
    config = ctx.obj['config']

    previous_messages = []
    if history_file:
        with open(history_file, 'r', encoding='utf-8') as f:
            previous_messages = [ChatMessage(role=item['role'], text=item['text']) for item in json.load(f)]

    staging_dir = tempfile.mkdtemp(dir=config.processing.temp_directory)
    try:
        image_upload = _stage_upload(image, staging_dir) if image else None
        audio_upload = _stage_upload(audio, staging_dir) if audio else None

        system = _build_system(ctx)
        try:
            outcome = asyncio.run(
                system.chat(agent_id, question, image_upload, audio_upload, previous_messages)
            )
        except ValidationError as e:
            raise click.ClickException(str(e))
        finally:
            system.close()
    finally:
        shutil.rmtree(staging_dir, ignore_errors=True)

    _echo_json(outcome.to_dict())
    if not outcome.success:
        sys.exit(1)


@cli.command()
@click.argument('agent_id')
@click.pass_context
def status(ctx, agent_id: str):
    """Show whether an agent exists and is trained."""
    from .agents import JsonFileAgentRepository
    from .agents.trainer import agent_status

    repository = JsonFileAgentRepository(ctx.obj['config'].storage.corpus_path)
    try:
        info = asyncio.run(agent_status(repository, agent_id))
    except ValidationError as e:
        raise click.ClickException(str(e))

    if info is None:
        raise click.ClickException(f"Agent {agent_id} not found")
    _echo_json(info)


@cli.command()
@click.pass_context
def config_show(ctx):
    """Show current configuration."""
    config = ctx.obj['config']

    click.echo("=== Current Configuration ===")
    click.echo(f"Upload directory: {config.processing.upload_directory}")
    click.echo(f"Document formats: {', '.join(config.processing.document_formats)}")
    click.echo(f"Text model: {config.gemini.text_model}")
    click.echo(f"Media model: {config.gemini.media_model}")
    click.echo(f"API keys configured: {len(config.gemini.api_keys)}")
    click.echo(f"Crawl page limit: {config.crawler.max_pages}")
    click.echo(f"Corpus store: {config.storage.corpus_path}")


def main():
    """Main CLI entry point."""
    cli()


if __name__ == '__main__':
    main()
