"""Command-line entry point for the transcription pipeline.

`meeting-transcriber transcribe PATH` runs one job and prints the transcript
to stdout; progress and JSON logs go to stderr. `meeting-transcriber
summarize FILE` turns a saved transcript into bullet-point notes.
"""

import asyncio
import logging
import sys
import uuid

import click

from meeting_transcriber.asr.registry import get_asr_engine
from meeting_transcriber.audio.chunker import AudioChunker, ChunkerConfig
from meeting_transcriber.audio.source import AudioSource
from meeting_transcriber.audio.speedup import speed_up_audio
from meeting_transcriber.config import EnvCredentialProvider, Settings
from meeting_transcriber.llm.chat import ChatClient
from meeting_transcriber.notifications.sink import (
    LoggingNotificationSink,
    NotificationSink,
    WebhookNotificationSink,
)
from meeting_transcriber.observability.logger import configure_logging
from meeting_transcriber.pipeline import TranscriptionOrchestrator, TranscriptionResult
from meeting_transcriber.progress import TranscriptionProgress
from meeting_transcriber.transport.http_client import TransportClient
from meeting_transcriber.utils.errors import TranscriptionError
from meeting_transcriber.utils.retry import LONG_RUNNING_POLICY, TRANSCRIPTION_POLICY

logger = logging.getLogger(__name__)

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ValueError as exc:
        raise click.ClickException(str(exc)) from exc


def _build_notifier(settings: Settings) -> NotificationSink:
    if settings.notify_webhook_url:
        return WebhookNotificationSink(settings.notify_webhook_url)
    return LoggingNotificationSink()


def _print_progress(progress: TranscriptionProgress) -> None:
    click.echo(
        f"[{progress.percent_complete:5.1f}%] {progress.stage}",
        err=True,
    )


async def _run_transcription(
    settings: Settings,
    path: str,
    job_id: str,
    job_name: str,
    speedup: bool,
    long_running: bool,
) -> TranscriptionResult:
    """Build the collaborators for one job and run it."""
    chunker = AudioChunker(
        ChunkerConfig(
            threshold_seconds=settings.chunk_threshold_seconds,
            window_seconds=settings.chunk_window_seconds,
            max_chunk_size_bytes=settings.max_chunk_size_bytes,
            overlap_seconds=settings.chunk_overlap_seconds,
        )
    )
    notifier = _build_notifier(settings)

    def speed_up(data: bytes) -> bytes:
        return speed_up_audio(data, settings.speedup_factor)

    async with TransportClient(
        EnvCredentialProvider(),
        request_timeout=settings.request_timeout_seconds,
        resource_timeout=settings.resource_timeout_seconds,
    ) as transport:
        engine = get_asr_engine(
            "openai",
            transport=transport,
            base_url=settings.openai_base_url,
            model=settings.transcription_model,
        )
        orchestrator = TranscriptionOrchestrator(
            engine,
            chunker=chunker,
            notifier=notifier,
            retry_policy=LONG_RUNNING_POLICY if long_running else TRANSCRIPTION_POLICY,
            speed_up=speed_up if speedup and settings.speedup_enabled else None,
            metrics_stream=sys.stderr,
        )
        source = AudioSource.from_path(path)
        try:
            return await orchestrator.run(
                source,
                on_progress=_print_progress,
                job_id=job_id,
                job_name=job_name,
            )
        finally:
            if isinstance(notifier, WebhookNotificationSink):
                await notifier.close()


async def _run_summary(settings: Settings, text: str, with_title: bool) -> str:
    async with TransportClient(
        EnvCredentialProvider(),
        request_timeout=settings.request_timeout_seconds,
        resource_timeout=settings.resource_timeout_seconds,
    ) as transport:
        chat = ChatClient(
            transport, base_url=settings.openai_base_url, model=settings.chat_model
        )
        summary = await chat.summarize_text(text)
        if not with_title:
            return summary
        title = await chat.generate_title(text)
        return f"{title}\n\n{summary}"


@click.group()
@click.version_option(version="0.1.0", prog_name="meeting-transcriber")
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="INFO",
    show_default=True,
    help="Level of the JSON logs written to stderr.",
)
def main(log_level: str) -> None:
    """Transcribe meeting recordings and summarize the transcripts."""
    configure_logging(getattr(logging, log_level.upper()))


@main.command()
@click.argument("path", type=click.Path(dir_okay=False))
@click.option("--job-id", default=None, help="Job identifier (random if omitted).")
@click.option("--job-name", default="", help="Display name used in notifications.")
@click.option("--no-speedup", is_flag=True, help="Send audio at original speed.")
@click.option(
    "--long-running",
    is_flag=True,
    help="Use the slower retry schedule meant for long recordings.",
)
@click.option(
    "--output",
    type=click.Path(dir_okay=False, writable=True),
    default=None,
    help="Write the transcript to this file instead of stdout.",
)
def transcribe(
    path: str,
    job_id: str | None,
    job_name: str,
    no_speedup: bool,
    long_running: bool,
    output: str | None,
) -> None:
    """Transcribe the audio file at PATH."""
    settings = _load_settings()
    job_id = job_id or str(uuid.uuid4())

    result = asyncio.run(
        _run_transcription(
            settings,
            path,
            job_id=job_id,
            job_name=job_name,
            speedup=not no_speedup,
            long_running=long_running,
        )
    )

    if result.status != "done":
        failure = result.error
        click.echo(
            f"Transcription failed ({failure.exception_type}): {failure.message}",
            err=True,
        )
        sys.exit(1)

    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(result.transcript + "\n")
        click.echo(f"Transcript written to {output}", err=True)
    else:
        click.echo(result.transcript)


@main.command()
@click.argument("file", type=click.File("r", encoding="utf-8"))
@click.option("--title", is_flag=True, help="Also generate a short title.")
def summarize(file, title: bool) -> None:
    """Summarize the transcript in FILE ('-' for stdin)."""
    text = file.read().strip()
    if not text:
        raise click.ClickException("Transcript is empty")

    settings = _load_settings()
    try:
        summary = asyncio.run(_run_summary(settings, text, with_title=title))
    except TranscriptionError as exc:
        click.echo(f"Summary failed: {exc}", err=True)
        sys.exit(1)
    click.echo(summary)


def cli() -> None:
    """Console script entry point."""
    main()


if __name__ == "__main__":
    cli()
