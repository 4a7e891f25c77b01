"""ASR engine registry with configuration-driven provider selection.

Maps provider name strings to engine classes. Use get_asr_engine() to
instantiate an engine by name with engine-specific configuration.
"""

from meeting_transcriber.asr.interface import ASREngine
from meeting_transcriber.asr.openai_engine import OpenAITranscriptionEngine
from meeting_transcriber.utils.errors import InvalidInputError

ASR_ENGINES: dict[str, type[ASREngine]] = {
    "openai": OpenAITranscriptionEngine,
}


def get_asr_engine(provider: str, **kwargs: object) -> ASREngine:
    """Create an ASR engine instance by provider name.

    Args:
        provider: Provider name (e.g., "openai").
        **kwargs: Engine-specific configuration passed to the constructor.

    Returns:
        An initialized ASREngine instance.

    Raises:
        InvalidInputError: If the provider name is not registered.
    """
    engine_cls = ASR_ENGINES.get(provider)
    if not engine_cls:
        available = ", ".join(sorted(ASR_ENGINES.keys()))
        raise InvalidInputError(
            f"Unknown ASR provider: '{provider}'. Available: {available}"
        )
    return engine_cls(**kwargs)
