"""Automatic speech recognition modules."""

from meeting_transcriber.asr.registry import get_asr_engine

__all__ = ["get_asr_engine"]
