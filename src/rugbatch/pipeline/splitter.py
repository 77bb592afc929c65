"""Split an ordered item list into fixed-size chunks."""

import logging
from collections.abc import Sequence

from rugbatch.models.errors import ValidationError
from rugbatch.models.pipeline import Chunk
from rugbatch.models.rug import ProcessedRug

logger = logging.getLogger(__name__)


def create_chunks(rugs: Sequence[ProcessedRug], chunk_size: int) -> tuple[Chunk, ...]:
    """Partition ``rugs`` into consecutive chunks of ``chunk_size``.

    Every chunk but the last holds exactly ``chunk_size`` items; the last holds
    between 1 and ``chunk_size``. Concatenating the chunks reproduces ``rugs``.
    """
    if chunk_size <= 0:
        raise ValidationError("chunk_size must be positive", details={"chunk_size": chunk_size})
    if not rugs:
        raise ValidationError("Cannot chunk an empty item list")

    chunks = tuple(
        Chunk(index=index, items=tuple(rugs[start : start + chunk_size]))
        for index, start in enumerate(range(0, len(rugs), chunk_size))
    )
    logger.info(f"Created {len(chunks)} chunks from {len(rugs)} rugs (chunk size {chunk_size})")
    return chunks
