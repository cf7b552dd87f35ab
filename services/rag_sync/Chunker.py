"""Text chunking for embedding.

Splits long documents into overlapping chunks that end on natural
boundaries where possible, so each chunk stays within the embedding
model's context and neighbouring chunks share some text.
"""

import math
import re

from pydantic import BaseModel

from shared.helper.errors import ConfigurationError

# break priority: paragraph > sentence end > clause > any whitespace
_BREAK_PATTERNS = (
    re.compile(r"\n\n"),
    re.compile(r"[.!?]\s+"),
    re.compile(r"[,;:]\s+"),
    re.compile(r"\s+"),
)
# a break only counts when it lies past this fraction of the window
_LATE_BREAK_RATIO = 0.6

CHARS_PER_TOKEN = 4
DEFAULT_MAX_TOKENS = 250


class Chunk(BaseModel):
    """A slice of a text. text is trimmed; start_char/end_char span the untrimmed slice."""

    text: str
    index: int
    start_char: int
    end_char: int


class ChunkOptions(BaseModel):
    """Chunking parameters, in characters."""

    max_chunk_size: int = 1000  # ~250 tokens
    chunk_overlap: int = 200
    min_chunk_size: int = 100

    def validate_sizes(self) -> None:
        """
        Raises:
            ConfigurationError: If the sizes cannot produce a progressing window.
        """
        if self.max_chunk_size <= 0:
            raise ConfigurationError(f"max_chunk_size must be positive, got {self.max_chunk_size}.")
        if self.chunk_overlap < 0 or self.min_chunk_size < 0:
            raise ConfigurationError("chunk_overlap and min_chunk_size must not be negative.")
        if self.chunk_overlap >= self.max_chunk_size:
            raise ConfigurationError(
                f"chunk_overlap ({self.chunk_overlap}) must be smaller than max_chunk_size ({self.max_chunk_size})."
            )
        if self.min_chunk_size > self.max_chunk_size:
            raise ConfigurationError(
                f"min_chunk_size ({self.min_chunk_size}) must not exceed max_chunk_size ({self.max_chunk_size})."
            )


def chunk_text(text: str, options: ChunkOptions | None = None) -> list[Chunk]:
    """Split text into overlapping chunks.

    Args:
        text (str): The text to split.
        options (ChunkOptions | None): Chunk sizes; defaults to 1000/200/100.

    Returns:
        list[Chunk]: Chunks in text order, indexed sequentially. Windows whose
            trimmed text is shorter than min_chunk_size are skipped unless the
            whole text fits into a single chunk.

    Raises:
        ConfigurationError: If the options are invalid.
    """
    opts = options or ChunkOptions()
    opts.validate_sizes()
    text_length = len(text)

    if text_length <= opts.max_chunk_size:
        return [Chunk(text=text.strip(), index=0, start_char=0, end_char=text_length)]

    chunks: list[Chunk] = []
    start = 0
    while start < text_length:
        end = start + opts.max_chunk_size
        reached_end = end >= text_length
        if reached_end:
            end = text_length
        else:
            end = _find_break_point(text, start, end)

        piece = text[start:end].strip()
        if len(piece) >= opts.min_chunk_size:
            chunks.append(Chunk(text=piece, index=len(chunks), start_char=start, end_char=end))

        if reached_end:
            break

        next_start = end - opts.chunk_overlap
        if next_start <= start:
            # overlap would stall the window, continue without it
            next_start = end
        start = next_start

        if start >= text_length - opts.min_chunk_size:
            _extend_last_chunk(text, chunks)
            break

    return chunks


def _find_break_point(text: str, start: int, max_end: int) -> int:
    """Return the end offset of the window [start, max_end).

    For the first pattern with a match in the late part of the window, the
    break goes right after the last such match; otherwise at max_end.
    """
    window = text[start:max_end]
    threshold = len(window) * _LATE_BREAK_RATIO

    for pattern in _BREAK_PATTERNS:
        last_match = None
        for match in pattern.finditer(window):
            if match.start() > threshold:
                last_match = match
        if last_match is not None:
            return start + last_match.end()

    return max_end


def _extend_last_chunk(text: str, chunks: list[Chunk]) -> None:
    """Stretch the last chunk to the end of the text if a short tail would be dropped."""
    if not chunks:
        return
    last = chunks[-1]
    if last.end_char >= len(text) or not text[last.end_char:].strip():
        return
    chunks[-1] = Chunk(
        text=text[last.start_char:].strip(),
        index=last.index,
        start_char=last.start_char,
        end_char=len(text),
    )


def estimate_tokens(text: str) -> int:
    """Rough token count, ~4 characters per token for English text."""
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def needs_chunking(text: str, max_tokens: int = DEFAULT_MAX_TOKENS) -> bool:
    """True if the estimated token count exceeds max_tokens."""
    return estimate_tokens(text) > max_tokens


def prepare_text(title: str, content: str) -> str:
    """Combine title and content into the text that gets embedded."""
    return f"{title}\n\n{content}"
