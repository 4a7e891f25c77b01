"""ffmpeg/ffprobe discovery and stream metadata probing.

Thin subprocess wrappers used by the chunker and the speed-up transform to
locate the binaries and read duration and sample rate from audio files.
"""

import shutil
import subprocess

from meeting_transcriber.utils.errors import AudioProcessingError

FFPROBE_TIMEOUT_SECONDS = 10


def check_ffmpeg_available() -> str:
    """Verify ffmpeg is available on the system.

    Returns:
        Path to the ffmpeg binary.

    Raises:
        AudioProcessingError: If ffmpeg is not found.
    """
    ffmpeg_path = shutil.which("ffmpeg")
    if ffmpeg_path is None:
        raise AudioProcessingError("ffmpeg binary not found on PATH")
    return ffmpeg_path


def _run_ffprobe(input_path: str, entries: str, stream: bool) -> str:
    """Run ffprobe and return the bare value of the requested entry.

    Raises:
        AudioProcessingError: If ffprobe is missing, fails, or times out.
    """
    ffprobe_path = shutil.which("ffprobe")
    if ffprobe_path is None:
        raise AudioProcessingError("ffprobe binary not found on PATH")

    cmd = [ffprobe_path, "-v", "error"]
    if stream:
        cmd += ["-select_streams", "a:0"]
    cmd += [
        "-show_entries",
        entries,
        "-of",
        "default=noprint_wrappers=1:nokey=1",
        input_path,
    ]

    try:
        result = subprocess.run(
            cmd,
            check=True,
            capture_output=True,
            text=True,
            timeout=FFPROBE_TIMEOUT_SECONDS,
        )
    except subprocess.CalledProcessError as exc:
        stderr = exc.stderr.strip() if exc.stderr else "unknown error"
        raise AudioProcessingError(
            f"Audio file is corrupt or unreadable (ffprobe): {stderr}",
            input_path=input_path,
        ) from exc
    except subprocess.TimeoutExpired as exc:
        raise AudioProcessingError(
            f"ffprobe timed out after {FFPROBE_TIMEOUT_SECONDS}s",
            input_path=input_path,
        ) from exc

    return result.stdout.strip().splitlines()[0] if result.stdout.strip() else ""


def probe_duration(input_path: str) -> float:
    """Return the container duration of an audio file in seconds.

    Raises:
        AudioProcessingError: If the duration cannot be determined.
    """
    raw = _run_ffprobe(input_path, "format=duration", stream=False)
    try:
        return float(raw)
    except ValueError as exc:
        raise AudioProcessingError(
            f"ffprobe reported no duration: {raw!r}", input_path=input_path
        ) from exc


def probe_sample_rate(input_path: str) -> int:
    """Return the sample rate of the first audio stream in Hz.

    Raises:
        AudioProcessingError: If no audio stream is found.
    """
    raw = _run_ffprobe(input_path, "stream=sample_rate", stream=True)
    try:
        return int(raw)
    except ValueError as exc:
        raise AudioProcessingError(
            f"No audio track found: {raw!r}", input_path=input_path
        ) from exc
