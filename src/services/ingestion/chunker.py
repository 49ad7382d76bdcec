"""Text chunking with structural boundaries and an overlapping character fallback.

Splits a :class:`~src.models.rag.Document` into
:class:`~src.models.rag.DocumentChunk` objects no longer than
``chunk_size`` characters.  The strategy is a tiered fallback, each tier
tried only when the text is still too long:

1. **Whole text** -- short documents become a single chunk.
2. **Header split** -- markdown headings (``#`` to ``######``),
   ``SECTION n:`` / ``CHAPTER n:`` labels, numbered ``n. `` items and
   bracketed ``[n] `` references at a line start open a new segment.  The
   marker stays with the text that follows it.
3. **Paragraph split** -- blank-line separated paragraphs are packed
   greedily into chunks joined by a blank line.
4. **Character split** -- fixed windows that prefer to end on sentence
   punctuation or a newline near the window edge, with ``chunk_overlap``
   characters of trailing context repeated at the start of the next chunk.

Segments from tiers 2 and 3 that are still oversized are reduced with
tier 4.  Chunking is synchronous and total: any string, including the
empty one, produces at least one chunk.
"""

from __future__ import annotations

import hashlib
import re

import structlog

from src.models.rag import ChunkingOptions, Document, DocumentChunk

logger = structlog.get_logger(logger_name=__name__)

# A marker is only recognised at the start of the text or of a line.
_HEADER_RE = re.compile(r"(?:\n|^)(?:#{1,6} |SECTION \d+:|CHAPTER \d+:|\d+\.\s|\[\d+\]\s)")
_PARAGRAPH_RE = re.compile(r"\n\s*\n")

# How far back from a window edge to look for a natural break.
_BREAK_LOOKBACK = 100
_BREAK_CHARS = frozenset(".?!\n")


def make_chunk_id(document_id: str, index: int) -> str:
    """Return the deterministic id for chunk *index* of *document_id*."""
    digest = hashlib.md5(f"{document_id}-{index}".encode(), usedforsecurity=False).hexdigest()
    return f"chunk-{digest}"


class TextChunker:
    """Splits documents into bounded chunks, preferring structural boundaries.

    Parameters
    ----------
    options:
        Default :class:`ChunkingOptions`; a per-call value passed to
        :meth:`chunk` takes precedence.
    """

    def __init__(self, options: ChunkingOptions | None = None) -> None:
        self._options = options or ChunkingOptions()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def options(self) -> ChunkingOptions:
        return self._options

    def update_options(self, **changes: object) -> ChunkingOptions:
        """Replace the default options, validating the merged result."""
        self._options = ChunkingOptions.model_validate({**self._options.model_dump(), **changes})
        logger.info("chunker_options_updated", **self._options.model_dump())
        return self._options

    def chunk(self, document: Document, options: ChunkingOptions | None = None) -> list[DocumentChunk]:
        """Split *document* into ordered :class:`DocumentChunk` objects.

        Parameters
        ----------
        document:
            The source document.  Only ``content`` is split; id, title,
            source and creation time are stamped on every chunk.
        options:
            Overrides the chunker's default options for this call.

        Returns
        -------
        list[DocumentChunk]
            Chunks with contiguous indexes from 0 and ``total_chunks``
            equal to the list length.  Empty content yields one empty chunk.
        """
        opts = options or self._options
        overlap = opts.effective_overlap
        if overlap != opts.chunk_overlap:
            logger.warning(
                "chunk_overlap_clamped",
                chunk_size=opts.chunk_size,
                chunk_overlap=opts.chunk_overlap,
                document_id=document.document_id,
            )

        texts = self.split_text(document.content, opts.chunk_size, overlap, opts)
        total = len(texts)
        chunks = [
            DocumentChunk(
                chunk_id=make_chunk_id(document.document_id, index),
                document_id=document.document_id,
                text=text,
                chunk_index=index,
                total_chunks=total,
                title=document.title,
                source=document.source,
                created_at=document.created_at,
            )
            for index, text in enumerate(texts)
        ]

        logger.debug(
            "chunking_complete",
            document_id=document.document_id,
            num_chunks=total,
            avg_chars=sum(len(t) for t in texts) // total,
        )
        return chunks

    # ------------------------------------------------------------------
    # Tiered splitting
    # ------------------------------------------------------------------

    def split_text(
        self,
        text: str,
        chunk_size: int,
        overlap: int,
        options: ChunkingOptions,
    ) -> list[str]:
        """Return the chunk texts for *text*; never empty."""
        if len(text) <= chunk_size:
            return [text]

        segments: list[str] = []
        if options.respect_headers:
            segments = self._split_headers(text)
        if len(segments) <= 1 and options.respect_paragraphs:
            segments = self._split_paragraphs(text, chunk_size)
        if len(segments) <= 1:
            return self._split_characters(text, chunk_size, overlap)

        result: list[str] = []
        for segment in segments:
            if len(segment) > chunk_size:
                result.extend(self._split_characters(segment, chunk_size, overlap))
            else:
                result.append(segment)
        return result

    @staticmethod
    def _split_headers(text: str) -> list[str]:
        """Cut *text* in front of every header marker, keeping the marker."""
        starts = [m.start() for m in _HEADER_RE.finditer(text)]
        if not starts:
            return [text]

        bounds = ([0] if starts[0] != 0 else []) + starts + [len(text)]
        segments = [text[a:b].strip() for a, b in zip(bounds, bounds[1:])]
        return [s for s in segments if s]

    @staticmethod
    def _split_paragraphs(text: str, chunk_size: int) -> list[str]:
        """Greedily pack blank-line separated paragraphs up to *chunk_size*."""
        paragraphs = [p.strip() for p in _PARAGRAPH_RE.split(text) if p.strip()]

        chunks: list[str] = []
        current = ""
        for para in paragraphs:
            candidate = f"{current}\n\n{para}" if current else para
            if current and len(candidate) > chunk_size:
                chunks.append(current)
                current = para
            else:
                current = candidate
        if current:
            chunks.append(current)
        return chunks

    @staticmethod
    def _split_characters(text: str, chunk_size: int, overlap: int) -> list[str]:
        """Window *text* at *chunk_size*, preferring punctuation breaks.

        Consecutive windows share *overlap* characters.  The next window
        always starts after the previous one, so the loop terminates for
        any input.
        """
        if len(text) <= chunk_size:
            return [text]

        chunks: list[str] = []
        start = 0
        while start < len(text):
            end = start + chunk_size
            if end >= len(text):
                chunks.append(text[start:])
                break

            cut = end
            floor = max(start, end - _BREAK_LOOKBACK)
            for pos in range(end - 1, floor, -1):
                if text[pos] in _BREAK_CHARS:
                    cut = pos + 1
                    break

            chunks.append(text[start:cut])
            next_start = cut - overlap
            start = next_start if next_start > start else cut
        return chunks
