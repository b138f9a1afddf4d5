"""
Lease and portfolio Q&A over indexed lease clauses.

Retrieval is in-memory cosine similarity over chunk embeddings; the prompt
is assembled from lease metadata plus the top-ranked excerpts. When nothing
relevant is indexed (or retrieval fails) single-lease questions fall back to
a metadata-only prompt.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional, Sequence, Tuple

from llm import Embedder, LLMCall
from models import (
    Lease,
    LeaseChunk,
    LeaseQuestionResponse,
    PortfolioQuestionResponse,
    SourceChunk,
)

logger = logging.getLogger(__name__)

LEASE_TOP_K = 5
PORTFOLIO_TOP_K = 10
MAX_CHUNKS_PER_LEASE = 3
MIN_SIMILARITY = 0.3
SNIPPET_CHARS = 200

NO_DOCUMENTS_ANSWER = (
    "No leases have analyzed documents yet. Please upload and process lease documents "
    "to enable portfolio-level Q&A."
)
NO_MATCHES_ANSWER = "No relevant information found in the analyzed lease documents for your question."

Ranked = Tuple[LeaseChunk, float]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    if not a or not b or len(a) != len(b):
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm > 0 else 0.0


def ensure_embeddings(chunks: Sequence[LeaseChunk], embedder: Embedder) -> List[LeaseChunk]:
    """Embed any chunk that arrived without a vector, in one batch."""
    missing = [c for c in chunks if not c.embedding]
    if not missing:
        return list(chunks)
    vectors = iter(embedder([c.content for c in missing]))
    return [c if c.embedding else c.model_copy(update={"embedding": next(vectors)}) for c in chunks]


def rank_chunks(
    query_embedding: Sequence[float],
    chunks: Sequence[LeaseChunk],
    top_k: int = LEASE_TOP_K,
    min_similarity: float = MIN_SIMILARITY,
    max_per_lease: Optional[int] = None,
) -> List[Ranked]:
    scored = [(c, cosine_similarity(query_embedding, c.embedding)) for c in chunks]
    scored = sorted((s for s in scored if s[1] >= min_similarity), key=lambda s: s[1], reverse=True)
    if max_per_lease is not None:
        per_lease: Dict[str, int] = {}
        capped = []
        for chunk, sim in scored:
            if per_lease.get(chunk.lease_id, 0) < max_per_lease:
                per_lease[chunk.lease_id] = per_lease.get(chunk.lease_id, 0) + 1
                capped.append((chunk, sim))
        scored = capped
    return scored[:top_k]


def lease_metadata(lease: Lease) -> Dict[str, Any]:
    return {
        "tenant_name": lease.tenant_name,
        "property_name": lease.property_name or "N/A",
        "suite": lease.suite,
        "square_feet": lease.square_feet,
        "base_rent": lease.base_rent,
        "lease_start": lease.lease_start.isoformat() if lease.lease_start else None,
        "lease_end": lease.lease_end.isoformat() if lease.lease_end else None,
    }


def _metadata_block(metadata: Dict[str, Any]) -> str:
    rent = metadata.get("base_rent")
    return "\n".join([
        f"- Tenant: {metadata['tenant_name']}",
        f"- Property: {metadata['property_name']}",
        f"- Suite: {metadata.get('suite') or 'N/A'}",
        f"- Square Feet: {metadata.get('square_feet') or 'N/A'}",
        f"- Base Rent: {f'${rent:,.2f}/month' if rent else 'N/A'}",
        f"- Lease Start: {metadata.get('lease_start') or 'N/A'}",
        f"- Lease End: {metadata.get('lease_end') or 'N/A'}",
    ])


def build_rag_prompt(metadata: Dict[str, Any], ranked: Sequence[Ranked], question: str) -> str:
    context = "\n".join(f"[Context {i}]:\n{chunk.content}\n" for i, (chunk, _) in enumerate(ranked, start=1))
    return f"""You are a commercial real estate lease analyst. Answer questions about this lease accurately based on the provided context. If information is not present in the context, say you don't know rather than guessing.

LEASE METADATA:
{_metadata_block(metadata)}

LEASE DOCUMENT EXCERPTS:
{context}
USER QUESTION:
{question}

INSTRUCTIONS:
- Answer based on the lease metadata and document excerpts above
- Be specific and reference relevant details from the context
- If the answer is not in the provided context, clearly state that you don't have that information
- Keep your answer concise but complete

YOUR ANSWER:"""


def build_metadata_prompt(metadata: Dict[str, Any], question: str) -> str:
    return f"""You are a commercial real estate lease analyst. Answer the following question about a lease using ONLY the lease metadata provided below. If the information is not available in the metadata, clearly state that.

LEASE METADATA:
{_metadata_block(metadata)}

Note: No lease document text is available. Answer based only on the metadata above.

USER QUESTION:
{question}

YOUR ANSWER:"""


def build_portfolio_prompt(ranked: Sequence[Ranked], leases_by_id: Dict[str, Lease], question: str) -> str:
    blocks = []
    for i, (chunk, _) in enumerate(ranked, start=1):
        lease = leases_by_id.get(chunk.lease_id)
        tenant = lease.tenant_name if lease else "Unknown"
        prop = (lease.property_name if lease else "") or "N/A"
        blocks.append(f'[Context {i}]\nTenant: {tenant}\nProperty: {prop}\nSnippet:\n"""{chunk.content}"""\n')
    context = "\n".join(blocks)
    return f"""You are a commercial real estate portfolio analyst.
You are answering questions about a portfolio of leases.
Use ONLY the provided lease metadata and context snippets.
When describing results, name the tenant and property clearly.
If the answer is not clearly supported by the context, say that the information is not available.

LEASE DOCUMENT EXCERPTS FROM PORTFOLIO:
{context}
USER QUESTION:
{question}

INSTRUCTIONS:
- Answer based on the lease document excerpts above
- Clearly identify which tenant(s) and property/properties you are referencing
- If multiple leases are relevant, summarize findings across them
- If the information is not in the provided context, clearly state that
- Be concise but complete

YOUR ANSWER:"""


def _source(chunk: LeaseChunk, similarity: float, lease: Optional[Lease] = None) -> SourceChunk:
    snippet = chunk.content[:SNIPPET_CHARS] + ("..." if len(chunk.content) > SNIPPET_CHARS else "")
    return SourceChunk(
        lease_id=chunk.lease_id,
        chunk_index=chunk.chunk_index,
        snippet=snippet,
        similarity=round(similarity, 2),
        tenant_name=lease.tenant_name if lease else None,
        property_name=lease.property_name if lease else None,
    )


def answer_lease_question(
    lease: Lease,
    question: str,
    chunks: Sequence[LeaseChunk],
    llm: LLMCall,
    embedder: Embedder,
    top_k: int = LEASE_TOP_K,
) -> LeaseQuestionResponse:
    metadata = lease_metadata(lease)
    own_chunks = [c for c in chunks if c.lease_id == lease.id]

    ranked: List[Ranked] = []
    if own_chunks:
        try:
            indexed = ensure_embeddings(own_chunks, embedder)
            query_embedding = embedder([question])[0]
            ranked = rank_chunks(query_embedding, indexed, top_k=top_k)
        except Exception as e:
            logger.warning("[qa] retrieval failed lease=%s error=%s, using metadata only", lease.id, e)
            ranked = []

    if not ranked:
        logger.info("[qa] lease=%s mode=metadata_only chunks=%d", lease.id, len(own_chunks))
        return LeaseQuestionResponse(
            answer=llm(build_metadata_prompt(metadata, question)),
            mode="metadata_only",
            metadata=metadata,
        )

    logger.info("[qa] lease=%s mode=rag matches=%d", lease.id, len(ranked))
    return LeaseQuestionResponse(
        answer=llm(build_rag_prompt(metadata, ranked, question)),
        mode="rag",
        source_chunks=[_source(c, sim) for c, sim in ranked],
        metadata=metadata,
    )


def answer_portfolio_question(
    question: str,
    leases: Sequence[Lease],
    chunks: Sequence[LeaseChunk],
    llm: LLMCall,
    embedder: Embedder,
    property_id: Optional[str] = None,
    top_k: int = PORTFOLIO_TOP_K,
) -> PortfolioQuestionResponse:
    scope = "property" if property_id else "portfolio"
    in_scope = {lease.id: lease for lease in leases if property_id is None or lease.property_id == property_id}
    scoped_chunks = [c for c in chunks if c.lease_id in in_scope]
    if not scoped_chunks:
        return PortfolioQuestionResponse(answer=NO_DOCUMENTS_ANSWER, mode="no_documents", scope=scope)

    indexed = ensure_embeddings(scoped_chunks, embedder)
    query_embedding = embedder([question])[0]
    ranked = rank_chunks(query_embedding, indexed, top_k=top_k, max_per_lease=MAX_CHUNKS_PER_LEASE)
    if not ranked:
        return PortfolioQuestionResponse(answer=NO_MATCHES_ANSWER, mode="no_documents", scope=scope)

    logger.info("[qa] scope=%s mode=rag matches=%d leases=%d", scope, len(ranked), len(in_scope))
    return PortfolioQuestionResponse(
        answer=llm(build_portfolio_prompt(ranked, in_scope, question)),
        mode="rag",
        scope=scope,
        source_chunks=[_source(c, sim, in_scope.get(c.lease_id)) for c, sim in ranked],
    )
