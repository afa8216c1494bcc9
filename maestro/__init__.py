"""Maestro - WhatsApp knowledge assistant with turn-completion detection."""

from .assistant import Assistant, create_assistant
from .conversation import ConversationStore
from .decision import TurnDecisionEngine
from .document_processing import DocumentLoader, PageChunker
from .embeddings import EmbeddingService
from .generation import ResponseGenerator
from .knowledge_index import FaissKnowledgeIndex, get_knowledge_index
from .models import (
    ConversationMessage,
    InboundMessage,
    KnowledgeChunk,
    OutboundMessage,
    RetrievalResult,
)
from .pipeline import KnowledgePipeline
from .retrieval import RetrievalEngine

__all__ = [
    "Assistant",
    "ConversationMessage",
    "ConversationStore",
    "DocumentLoader",
    "EmbeddingService",
    "FaissKnowledgeIndex",
    "InboundMessage",
    "KnowledgeChunk",
    "KnowledgePipeline",
    "OutboundMessage",
    "PageChunker",
    "ResponseGenerator",
    "RetrievalEngine",
    "RetrievalResult",
    "TurnDecisionEngine",
    "create_assistant",
    "get_knowledge_index",
]
