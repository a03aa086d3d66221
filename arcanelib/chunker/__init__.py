from arcanelib.chunker.chunker import (
    Chunker,
    ChunkMergeError,
    chunk_text,
    merge_chunks,
    split_into_sections,
    split_paragraphs,
)
from arcanelib.chunker.models import Chunk, ChunkerConfig
from arcanelib.chunker.token_estimator import estimate_tokens

__all__ = [
    "Chunk",
    "Chunker",
    "ChunkerConfig",
    "ChunkMergeError",
    "chunk_text",
    "merge_chunks",
    "split_into_sections",
    "split_paragraphs",
    "estimate_tokens",
]
