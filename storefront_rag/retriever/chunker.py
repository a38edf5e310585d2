"""
Text chunking strategies for document segmentation.

Two policies are available behind one ``split_strategy`` setting:

- ``char``: character budget, cursor-based, splitting at the last sentence
  end (or line break) that fits in the budget.
- ``token-overlap``: sentence accumulation against a token budget, seeding
  each chunk with trailing sentences of the previous one.

Neither policy cuts inside a word. A sentence (or line) that alone exceeds
the budget is emitted whole as its own oversized chunk.
"""

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Dict, List, Optional, Type

import tiktoken


SENTENCE_TERMINATORS = '.!?'

# One sentence per match: shortest run ending in terminators followed by
# whitespace, or the rest of the line.
_SENTENCE_RE = re.compile(r'.+?(?:[.!?]+(?=\s|$)|$)')

DEFAULT_ENCODING = 'cl100k_base'

Measure = Callable[[str], int]


class InvalidArgument(ValueError):
    """Raised when a chunker is called outside its contract."""
    pass


@dataclass(frozen=True)
class Chunk:
    """A bounded segment of one document, ready for embedding."""

    source_id: str
    index: int
    text: str

    @property
    def id(self) -> str:
        """Storage identity: ``{source_id}#{index}``."""
        return f"{self.source_id}#{self.index}"


@lru_cache(maxsize=None)
def _get_encoding(name: str):
    return tiktoken.get_encoding(name)


def get_token_counter(encoding_name: str = DEFAULT_ENCODING) -> Measure:
    """
    Build a token counting function backed by tiktoken.

    The encoding is loaded on first use, not at construction.

    Args:
        encoding_name: tiktoken encoding name

    Returns:
        Function mapping text to its token count
    """
    def count_tokens(text: str) -> int:
        return len(_get_encoding(encoding_name).encode(text))

    return count_tokens


def split_sentences(text: str) -> List[str]:
    """
    Split text into sentence-like units.

    Lines are split first, then sentences inside each line. Units are
    trimmed and empty units dropped.
    """
    units = []
    for line in text.splitlines():
        for match in _SENTENCE_RE.finditer(line):
            unit = match.group().strip()
            if unit:
                units.append(unit)
    return units


def _ends_sentence(text: str, pos: int) -> bool:
    """True if a sentence ends right before ``pos``."""
    if pos <= 0 or text[pos - 1] not in SENTENCE_TERMINATORS:
        return False
    return pos == len(text) or text[pos].isspace()


class BaseChunker:
    """Common argument checks for chunking strategies."""

    def __init__(self, max_size: int, overlap: int = 0):
        if isinstance(max_size, bool) or not isinstance(max_size, int) or max_size <= 0:
            raise InvalidArgument(f"max_size must be a positive integer, got {max_size!r}")
        if isinstance(overlap, bool) or not isinstance(overlap, int) or overlap < 0:
            raise InvalidArgument(f"overlap must be a non-negative integer, got {overlap!r}")
        self.max_size = max_size
        self.overlap = overlap

    def split(self, text: str) -> List[str]:
        """
        Split text into ordered, non-empty, trimmed chunks.

        Args:
            text: Document text (may be empty)

        Returns:
            List of chunk strings

        Raises:
            InvalidArgument: If text is None
        """
        if text is None:
            raise InvalidArgument("text must be a string, got None")
        if not text.strip():
            return []
        return self._split(text)

    def _split(self, text: str) -> List[str]:
        raise NotImplementedError


class CharChunker(BaseChunker):
    """Character-budget chunker with a moving cursor."""

    def _split(self, text: str) -> List[str]:
        chunks = []
        end = len(text.rstrip())
        cursor = 0

        while cursor < end:
            while text[cursor].isspace():
                cursor += 1

            if end - cursor <= self.max_size:
                chunks.append(text[cursor:end])
                break

            split_at = self._find_split(text, cursor, cursor + self.max_size)
            piece = text[cursor:split_at].strip()
            if piece:
                chunks.append(piece)
            cursor = split_at

        return chunks

    @staticmethod
    def _find_split(text: str, start: int, limit: int) -> int:
        # Last sentence end within budget
        for pos in range(limit, start, -1):
            if _ends_sentence(text, pos):
                return pos

        # Last line break within budget
        newline = text.rfind('\n', start, limit)
        if newline > start:
            return newline + 1

        # Oversized unit: run on to the next natural boundary
        for pos in range(limit, len(text) + 1):
            if pos < len(text) and text[pos] == '\n':
                return pos
            if _ends_sentence(text, pos):
                return pos
        return len(text)


class TokenOverlapChunker(BaseChunker):
    """
    Sentence-accumulating chunker with a token budget and overlap.

    The overlap carried into a chunk is a contiguous suffix of the previous
    chunk, in original order.
    """

    def __init__(self, max_size: int, overlap: int = 0,
                 measure: Optional[Measure] = None):
        """
        Initialize chunker.

        Args:
            max_size: Maximum chunk size in measure units
            overlap: Size of trailing context carried into the next chunk
            measure: Size function; defaults to a tiktoken counter
        """
        super().__init__(max_size, overlap)
        self.measure = measure or get_token_counter()

    def _size(self, units: List[str]) -> int:
        return self.measure(' '.join(units))

    def _split(self, text: str) -> List[str]:
        chunks = []
        buffer: List[str] = []

        for unit in split_sentences(text):
            if buffer and self._size(buffer + [unit]) > self.max_size:
                chunks.append(' '.join(buffer))
                buffer = self._carry_over(buffer, unit)
            buffer.append(unit)

        if buffer:
            chunks.append(' '.join(buffer))
        return chunks

    def _carry_over(self, flushed: List[str], next_unit: str) -> List[str]:
        if not self.overlap:
            return []

        carried: List[str] = []
        carried_size = 0
        for unit in reversed(flushed):
            if carried_size >= self.overlap:
                break
            carried.insert(0, unit)
            carried_size = self._size(carried)

        # Oldest carried sentences go first when the budget is tight
        while carried and self._size(carried + [next_unit]) > self.max_size:
            carried.pop(0)
        return carried


STRATEGIES: Dict[str, Type[BaseChunker]] = {
    'char': CharChunker,
    'token-overlap': TokenOverlapChunker,
}


def get_chunker(strategy: str, max_size: int, overlap: int = 0,
                measure: Optional[Measure] = None) -> BaseChunker:
    """
    Build a chunker for a named strategy.

    Raises:
        InvalidArgument: If the strategy or budget is invalid
    """
    if strategy not in STRATEGIES:
        raise InvalidArgument(
            f"Unknown split strategy: {strategy!r} (expected one of {sorted(STRATEGIES)})"
        )
    if strategy == 'token-overlap':
        return TokenOverlapChunker(max_size, overlap, measure=measure)
    return CharChunker(max_size, overlap)


def chunk(text: str, max_size: int, overlap: int = 0, strategy: str = 'char',
          measure: Optional[Measure] = None) -> List[str]:
    """
    Split text into chunks bounded by ``max_size``.

    Args:
        text: Text to chunk
        max_size: Budget per chunk (characters for ``char``, tokens for
            ``token-overlap``)
        overlap: Carried-over context size; only used by ``token-overlap``
        strategy: ``char`` or ``token-overlap``
        measure: Optional size function for ``token-overlap``

    Returns:
        Ordered list of chunk strings
    """
    return get_chunker(strategy, max_size, overlap, measure).split(text)


class TextChunker:
    """Chunks documents according to configured policy."""

    DEFAULT_MAX_SIZE = {'char': 500, 'token-overlap': 800}

    def __init__(self, split_strategy: str = 'token-overlap',
                 max_size: Optional[int] = None, overlap: int = 100,
                 measure: Optional[Measure] = None):
        """
        Initialize chunker.

        Args:
            split_strategy: ``char`` or ``token-overlap``
            max_size: Budget per chunk; strategy default if None
            overlap: Overlap budget between consecutive chunks
            measure: Optional size function for ``token-overlap``
        """
        if max_size is None:
            max_size = self.DEFAULT_MAX_SIZE.get(split_strategy, 500)
        self.split_strategy = split_strategy
        self._chunker = get_chunker(split_strategy, max_size, overlap, measure)

    @property
    def max_size(self) -> int:
        return self._chunker.max_size

    @property
    def overlap(self) -> int:
        return self._chunker.overlap

    def chunk_text(self, text: str) -> List[str]:
        """Split raw text into chunk strings."""
        return self._chunker.split(text)

    def chunk_document(self, document) -> List[Chunk]:
        """
        Chunk a document, tagging each piece with its provenance.

        Args:
            document: Object with ``id`` and ``text`` attributes

        Returns:
            Chunks in index order
        """
        return [
            Chunk(source_id=document.id, index=i, text=piece)
            for i, piece in enumerate(self.chunk_text(document.text))
        ]


def get_chunker_from_config(config: dict, measure: Optional[Measure] = None) -> TextChunker:
    """Get configured chunker from the ``chunking`` config section."""
    strategy = config.get('split_strategy', 'token-overlap')
    if measure is None and strategy == 'token-overlap':
        measure = get_token_counter(config.get('encoding', DEFAULT_ENCODING))
    return TextChunker(
        split_strategy=strategy,
        max_size=config.get('max_size'),
        overlap=config.get('overlap', 100),
        measure=measure,
    )
