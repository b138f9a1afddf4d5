"""Lease document Q&A: clause chunking and retrieval-augmented answers."""

from leases.chunker import ClauseChunk, chunk_lease_text
from leases.qa import answer_lease_question, answer_portfolio_question

__all__ = [
    "ClauseChunk",
    "chunk_lease_text",
    "answer_lease_question",
    "answer_portfolio_question",
]
