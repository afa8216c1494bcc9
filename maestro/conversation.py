"""Bounded, expiring conversation history kept in Redis."""

import json

import redis

from .config import config
from .models import ConversationMessage

logger = config.get_logger(__name__)


class ConversationStore:
    """Per-conversation message window backed by a Redis list.

    Messages are pushed at the head of the list, so the list holds the most
    recent message first. The window is trimmed to ``max_messages`` and its
    TTL is refreshed on every write.

    Store failures never reach the caller: a failed append is logged and
    dropped, a failed read yields an empty window.
    """

    def __init__(
        self,
        client: redis.Redis | None = None,
        *,
        max_messages: int | None = None,
        ttl_seconds: int | None = None,
        key_prefix: str | None = None,
    ) -> None:
        """Initialize the ConversationStore.

        Args:
            client: Redis client. If None, one is created from config.REDIS_URL.
            max_messages: Window size. If None, uses config.CONVERSATION_MAX_MESSAGES.
            ttl_seconds: Inactivity expiry. If None, uses
                config.CONVERSATION_TTL_SECONDS.
            key_prefix: Prefix of the Redis keys. If None, uses
                config.CONVERSATION_KEY_PREFIX.
        """
        if max_messages is None:
            max_messages = config.CONVERSATION_MAX_MESSAGES
        if ttl_seconds is None:
            ttl_seconds = config.CONVERSATION_TTL_SECONDS
        if key_prefix is None:
            key_prefix = config.CONVERSATION_KEY_PREFIX
        if max_messages < 1:
            msg = f"max_messages must be positive, got {max_messages}"
            raise ValueError(msg)

        self.client = client or redis.Redis.from_url(
            config.REDIS_URL, decode_responses=True
        )
        self.max_messages = max_messages
        self.ttl_seconds = ttl_seconds
        self.key_prefix = key_prefix

    def key(self, conversation_id: str) -> str:
        return f"{self.key_prefix}{conversation_id}"

    def append(self, conversation_id: str, message: ConversationMessage) -> None:
        """Store a message and bound the window to the most recent messages."""
        key = self.key(conversation_id)
        try:
            self.client.lpush(key, json.dumps(message.to_record()))
            self.client.ltrim(key, 0, self.max_messages - 1)
            self.client.expire(key, self.ttl_seconds)
        except redis.RedisError:
            logger.exception("Error storing message for %s", key)

    def read(self, conversation_id: str) -> list[ConversationMessage]:
        """Return the conversation window, oldest message first.

        Returns:
            Up to ``max_messages`` messages; empty when the conversation is
            unknown or the store is unavailable.
        """
        key = self.key(conversation_id)
        try:
            records = self.client.lrange(key, 0, self.max_messages - 1)
        except redis.RedisError:
            logger.exception("Error retrieving conversation history for %s", key)
            return []

        if not records:
            return []

        messages = [
            message
            for message in (self._parse_record(record) for record in records)
            if message is not None
        ]
        messages.reverse()
        return messages

    def clear(self, conversation_id: str) -> None:
        """Delete the conversation window."""
        key = self.key(conversation_id)
        try:
            self.client.delete(key)
        except redis.RedisError:
            logger.exception("Error clearing conversation %s", key)
        else:
            logger.info("Conversation %s cleared", key)

    @staticmethod
    def _parse_record(record: object) -> ConversationMessage | None:
        """Decode one stored record, dropping it when malformed.

        Returns:
            The parsed message, or None for records that fail validation.
        """
        decoded = record
        if isinstance(decoded, bytes):
            try:
                decoded = decoded.decode("utf-8")
            except UnicodeDecodeError:
                logger.warning("Dropping undecodable conversation record")
                return None
        if isinstance(decoded, str):
            try:
                decoded = json.loads(decoded)
            except json.JSONDecodeError:
                logger.warning("Dropping non-JSON conversation record: %.80s", decoded)
                return None

        message = ConversationMessage.from_record(decoded)
        if message is None:
            logger.warning("Dropping invalid conversation record: %.80r", decoded)
        return message
