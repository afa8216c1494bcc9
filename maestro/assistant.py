"""Turn orchestration: store, decide, retrieve-and-generate, deliver."""

from collections.abc import Callable

import httpx
import openai
import redis

from .config import config
from .conversation import ConversationStore
from .decision import TurnDecisionEngine
from .embeddings import EmbeddingService
from .generation import ResponseGenerator
from .knowledge_index import FaissKnowledgeIndex, get_knowledge_index
from .models import (
    ConversationMessage,
    InboundMessage,
    OutboundMessage,
    current_timestamp_ms,
)
from .retrieval import RetrievalEngine

logger = config.get_logger(__name__)

FALLBACK_REPLY = (
    "Sorry, I'm having trouble answering right now. Please try again in a moment."
)

GENERATION_ERRORS = (openai.OpenAIError, ValueError, KeyError, IndexError)

ReplySink = Callable[[OutboundMessage], object]
MediaFetcher = Callable[[str], str | None]


class Assistant:
    """Handles one inbound user message per call.

    Every message is recorded. Replies are produced only when the decision
    engine judges the turn complete; otherwise the call ends silently and the
    message waits in the window for the user's next fragment.

    Concurrent calls for the same conversation are not serialized; their
    window writes may interleave.
    """

    def __init__(
        self,
        store: ConversationStore,
        decision_engine: TurnDecisionEngine,
        generator: ResponseGenerator,
        sink: ReplySink | None = None,
        media_fetcher: MediaFetcher | None = None,
        clock: Callable[[], int] = current_timestamp_ms,
    ) -> None:
        """Initialize the Assistant.

        Args:
            store: Conversation window store.
            decision_engine: Turn-completion decision engine.
            generator: Reply generator with the knowledge search tool.
            sink: Delivers replies; replies are only returned when None.
            media_fetcher: Resolves attachment ids to data URLs.
            clock: Current time in ms since the epoch.
        """
        self.store = store
        self.decision_engine = decision_engine
        self.generator = generator
        self.sink = sink
        self.media_fetcher = media_fetcher
        self.clock = clock

    def handle_message(self, inbound: InboundMessage) -> str | None:
        """Process one user message.

        Returns:
            The reply sent, or None when the assistant waits for more input.
        """
        conversation_id = inbound.conversation_id
        if not conversation_id:
            logger.warning("Ignoring message without conversation identity")
            return None

        has_attachment = bool(inbound.attachment_id)
        now = self.clock()
        history = self.store.read(conversation_id)
        user_message = ConversationMessage(
            role="user",
            content=inbound.text,
            timestamp=now,
            image_id=inbound.attachment_id,
        )
        self.store.append(conversation_id, user_message)

        if not self.decision_engine.should_respond(
            inbound.text, history, has_attachment=has_attachment, now_ms=now
        ):
            logger.info("Waiting for more messages from %s", conversation_id)
            return None

        window = self.store.read(conversation_id)
        if not window:
            window = [*history, user_message][-self.store.max_messages :]

        image_data = self._fetch_media(inbound.attachment_id)

        try:
            reply = self.generator.generate(window, image_data)
        except GENERATION_ERRORS:
            logger.exception("Error generating reply for %s", conversation_id)
            self._deliver(OutboundMessage(conversation_id, FALLBACK_REPLY))
            return FALLBACK_REPLY

        self.store.append(
            conversation_id,
            ConversationMessage(
                role="assistant", content=reply, timestamp=self.clock()
            ),
        )
        self._deliver(OutboundMessage(conversation_id, reply))
        return reply

    def _fetch_media(self, attachment_id: str | None) -> str | None:
        if not attachment_id or self.media_fetcher is None:
            return None
        image_data = self.media_fetcher(attachment_id)
        if image_data is None:
            logger.warning("Media %s unavailable; answering from text", attachment_id)
        return image_data

    def _deliver(self, outbound: OutboundMessage) -> None:
        if self.sink is None:
            return
        try:
            self.sink(outbound)
        except httpx.HTTPError:
            logger.exception("Failed to deliver reply to %s", outbound.conversation_id)


def create_assistant(
    sink: ReplySink | None = None,
    media_fetcher: MediaFetcher | None = None,
    redis_client: redis.Redis | None = None,
    openai_api_key: str | None = None,
    knowledge_index: FaissKnowledgeIndex | None = None,
) -> Assistant:
    """Build an Assistant wired from configuration.

    Returns:
        A ready Assistant over the configured Redis store and knowledge index.
    """
    if knowledge_index is None:
        knowledge_index = get_knowledge_index(
            embedding_service=EmbeddingService(api_key=openai_api_key)
        )
    retrieval = RetrievalEngine(knowledge_index)

    return Assistant(
        store=ConversationStore(redis_client),
        decision_engine=TurnDecisionEngine(openai_api_key=openai_api_key),
        generator=ResponseGenerator(
            retrieval.search_knowledge, openai_api_key=openai_api_key
        ),
        sink=sink,
        media_fetcher=media_fetcher,
    )
