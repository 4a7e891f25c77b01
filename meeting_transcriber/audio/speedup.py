"""Pre-transcription speed-up using ffmpeg's atempo filter.

Re-encodes audio at 1.5x playback speed (pitch preserved) so the billed
duration of a transcription drops by about a third. Low-rate recordings
(<= 16 kHz, typical of in-app capture) only have their tempo changed;
higher-rate files are also downsampled to 16 kHz mono and compressed.
"""

import logging
import os
import subprocess
import tempfile

from meeting_transcriber.audio.probe import check_ffmpeg_available, probe_sample_rate
from meeting_transcriber.utils.errors import AudioProcessingError

logger = logging.getLogger(__name__)

DEFAULT_SPEED_FACTOR = 1.5
LOW_SAMPLE_RATE_HZ = 16000
COMPRESSED_BITRATE = "48k"
FFMPEG_TIMEOUT_SECONDS = 120


def _atempo_chain(factor: float) -> str:
    """Build an atempo filter chain; a single atempo accepts 0.5-2.0."""
    if factor <= 0:
        raise AudioProcessingError(f"Invalid speed factor: {factor}")
    stages: list[str] = []
    remaining = factor
    while remaining > 2.0:
        stages.append("atempo=2.0")
        remaining /= 2.0
    while remaining < 0.5:
        stages.append("atempo=0.5")
        remaining /= 0.5
    stages.append(f"atempo={remaining:g}")
    return ",".join(stages)


def build_speedup_command(
    ffmpeg_path: str,
    input_path: str,
    output_path: str,
    sample_rate: int,
    factor: float = DEFAULT_SPEED_FACTOR,
) -> list[str]:
    """Return the ffmpeg argv for a speed-up re-encode."""
    cmd = [
        ffmpeg_path,
        "-y",
        "-i",
        input_path,
        "-vn",
        "-filter:a",
        _atempo_chain(factor),
        "-c:a",
        "aac",
    ]
    if sample_rate > LOW_SAMPLE_RATE_HZ:
        cmd += ["-ar", str(LOW_SAMPLE_RATE_HZ), "-ac", "1", "-b:a", COMPRESSED_BITRATE]
    cmd.append(output_path)
    return cmd


def speed_up_audio(data: bytes, factor: float = DEFAULT_SPEED_FACTOR) -> bytes:
    """Return data re-encoded at `factor` times playback speed.

    Args:
        data: Encoded input audio (m4a/AAC or anything ffmpeg reads).
        factor: Playback speed multiplier.

    Returns:
        Encoded m4a bytes.

    Raises:
        AudioProcessingError: If probing or re-encoding fails.
    """
    ffmpeg_path = check_ffmpeg_available()

    with tempfile.TemporaryDirectory() as tmp_dir:
        input_path = os.path.join(tmp_dir, "input.m4a")
        output_path = os.path.join(tmp_dir, "output.m4a")
        with open(input_path, "wb") as f:
            f.write(data)

        sample_rate = probe_sample_rate(input_path)
        cmd = build_speedup_command(
            ffmpeg_path, input_path, output_path, sample_rate, factor
        )

        try:
            subprocess.run(
                cmd,
                check=True,
                capture_output=True,
                text=True,
                timeout=FFMPEG_TIMEOUT_SECONDS,
            )
        except subprocess.CalledProcessError as exc:
            raise AudioProcessingError(
                f"ffmpeg speed-up failed: {exc.stderr.strip()}",
                input_path=input_path,
            ) from exc
        except subprocess.TimeoutExpired as exc:
            raise AudioProcessingError(
                f"ffmpeg speed-up timed out after {FFMPEG_TIMEOUT_SECONDS} seconds",
                input_path=input_path,
            ) from exc

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            raise AudioProcessingError(
                "ffmpeg produced no output file", input_path=input_path
            )

        with open(output_path, "rb") as f:
            result = f.read()

    logger.info(
        "Audio sped up %.2gx at %d Hz (%d KB -> %d KB)",
        factor,
        sample_rate,
        len(data) // 1024,
        len(result) // 1024,
    )
    return result
