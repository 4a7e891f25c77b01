"""Transcript post-processing: merging per-chunk transcripts.

Chunks are extracted with a short trailing overlap, so the start of one
chunk's text may repeat the end of the previous one. merge_transcripts()
removes that repetition and joins the parts in chunk-index order.
"""

MAX_OVERLAP_CHARACTERS = 200
MIN_OVERLAP_CHARACTERS = 20


def trim_overlap(previous: str, next_text: str) -> str:
    """Strip the prefix of next_text that repeats the tail of previous.

    Matching is case-insensitive and only considers overlaps between
    MIN_OVERLAP_CHARACTERS and MAX_OVERLAP_CHARACTERS long; shorter
    coincidences are left alone.

    Args:
        previous: Text merged so far.
        next_text: Transcript of the following chunk.

    Returns:
        next_text with any detected overlap removed, stripped of whitespace.
    """
    previous = previous.strip()
    next_text = next_text.strip()
    if not previous:
        return next_text

    previous_suffix = previous[-MAX_OVERLAP_CHARACTERS:].lower()
    next_lower = next_text.lower()
    max_check = min(len(previous_suffix), len(next_lower))

    for length in range(max_check, MIN_OVERLAP_CHARACTERS - 1, -1):
        if next_lower.startswith(previous_suffix[-length:]):
            return next_text[length:].strip()

    return next_text


def merge_transcripts(parts: list[str]) -> str:
    """Join chunk transcripts in order with single spaces.

    Blank parts contribute nothing (no stray separators), seams are
    de-duplicated with trim_overlap(), and the result is stripped.

    Args:
        parts: Per-chunk transcripts in chunk-index order.

    Returns:
        The merged transcript; empty string if every part is blank.
    """
    merged = ""
    for part in parts:
        piece = trim_overlap(merged, part)
        if not piece:
            continue
        merged = f"{merged} {piece}" if merged else piece
    return merged.strip()
