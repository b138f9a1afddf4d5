"""Lease and portfolio Q&A with stub LLM / embedder callables."""
from datetime import date

import pytest

from leases.qa import (
    NO_DOCUMENTS_ANSWER,
    NO_MATCHES_ANSWER,
    answer_lease_question,
    answer_portfolio_question,
    cosine_similarity,
    rank_chunks,
)
from models import Lease, LeaseChunk

TOPICS = ["renew", "rent", "terminat"]


def keyword_embedder(texts):
    return [[1.0 if topic in t.lower() else 0.0 for topic in TOPICS] for t in texts]


class RecordingLLM:
    def __init__(self, answer="stub answer"):
        self.answer = answer
        self.prompts = []

    def __call__(self, prompt):
        self.prompts.append(prompt)
        return self.answer


LEASE = Lease(
    id="lease-bean",
    tenant_name="Bean There Coffee",
    property_id="prop-willow",
    property_name="Willow Creek Shopping Center",
    suite="Suite 101",
    square_feet=2400,
    base_rent=7200,
    lease_start=date(2021, 3, 1),
    lease_end=date(2026, 12, 31),
)
OTHER = Lease(id="lease-nimbus", tenant_name="Nimbus", property_id="prop-metro", property_name="Metro Office Tower")

CHUNKS = [
    LeaseChunk(lease_id="lease-bean", chunk_index=0, content="Tenant has one option to renew for five years."),
    LeaseChunk(lease_id="lease-bean", chunk_index=1, content="Landlord maintains the roof and structure."),
    LeaseChunk(lease_id="lease-nimbus", chunk_index=0, content="Tenant may terminate after month 36 with a fee."),
]


def test_cosine_similarity_edges():
    assert cosine_similarity([1, 0], [1, 0]) == pytest.approx(1.0)
    assert cosine_similarity([1, 0], [0, 1]) == 0
    assert cosine_similarity([], [1]) == 0
    assert cosine_similarity([1, 2], [1, 2, 3]) == 0
    assert cosine_similarity([0, 0], [1, 1]) == 0


def test_rank_chunks_threshold_top_k_and_cap():
    chunks = [
        LeaseChunk(lease_id="a", chunk_index=i, content=f"c{i}", embedding=[1.0, 0.1 * i]) for i in range(5)
    ] + [LeaseChunk(lease_id="b", chunk_index=0, content="far", embedding=[0.0, 1.0])]

    ranked = rank_chunks([1.0, 0.0], chunks, top_k=3)
    assert [c.chunk_index for c, _ in ranked] == [0, 1, 2]
    assert all(sim >= 0.3 for _, sim in ranked)

    capped = rank_chunks([1.0, 0.0], chunks, top_k=10, max_per_lease=2)
    assert [(c.lease_id, c.chunk_index) for c, _ in capped] == [("a", 0), ("a", 1)]


def test_lease_question_uses_relevant_clauses():
    llm = RecordingLLM("Yes, one five-year renewal option.")
    res = answer_lease_question(LEASE, "Can the tenant renew?", CHUNKS, llm, keyword_embedder)

    assert res.mode == "rag"
    assert res.answer == "Yes, one five-year renewal option."
    assert [(s.lease_id, s.chunk_index) for s in res.source_chunks] == [("lease-bean", 0)]
    assert res.source_chunks[0].similarity == 1.0
    assert "option to renew" in llm.prompts[0]
    assert "Bean There Coffee" in llm.prompts[0]
    assert res.metadata["lease_end"] == "2026-12-31"


def test_lease_question_without_matches_uses_metadata():
    llm = RecordingLLM()
    res = answer_lease_question(LEASE, "What is the parking ratio?", CHUNKS, llm, keyword_embedder)
    assert res.mode == "metadata_only"
    assert res.source_chunks == []
    assert "No lease document text is available" in llm.prompts[0]
    assert "$7,200.00/month" in llm.prompts[0]


def test_lease_question_survives_embedding_failure():
    def broken_embedder(texts):
        raise RuntimeError("embeddings down")

    res = answer_lease_question(LEASE, "Can the tenant renew?", CHUNKS, RecordingLLM(), broken_embedder)
    assert res.mode == "metadata_only"


def test_portfolio_question_across_leases():
    llm = RecordingLLM()
    res = answer_portfolio_question(
        "Which tenants can terminate early?", [LEASE, OTHER], CHUNKS, llm, keyword_embedder
    )
    assert res.mode == "rag"
    assert res.scope == "portfolio"
    assert [s.tenant_name for s in res.source_chunks] == ["Nimbus"]
    assert res.source_chunks[0].property_name == "Metro Office Tower"
    assert "Tenant: Nimbus" in llm.prompts[0]


def test_portfolio_question_scoped_to_property():
    res = answer_portfolio_question(
        "Which tenants can terminate early?", [LEASE, OTHER], CHUNKS, RecordingLLM(), keyword_embedder,
        property_id="prop-willow",
    )
    assert res.scope == "property"
    assert res.mode == "no_documents"
    assert res.answer == NO_MATCHES_ANSWER


def test_portfolio_question_without_documents():
    llm = RecordingLLM()
    res = answer_portfolio_question("Anything?", [LEASE, OTHER], [], llm, keyword_embedder)
    assert res.mode == "no_documents"
    assert res.answer == NO_DOCUMENTS_ANSWER
    assert llm.prompts == []
