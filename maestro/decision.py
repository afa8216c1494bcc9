"""Turn-completion decision: answer now or wait for the next fragment."""

import datetime
import json
import re
from collections.abc import Sequence

import openai
from openai import OpenAI

from .config import config
from .models import ConversationMessage, current_timestamp_ms
from .prompts import DECISION_PROMPT

logger = config.get_logger(__name__)

RESPOND_NOW = "respond_now"
WAIT_FOR_MORE = "wait_for_more"
DECISION_LABELS = (RESPOND_NOW, WAIT_FOR_MORE)

ATTACHMENT_MARKER = "[attachment]"

DECISION_RESPONSE_FORMAT = {
    "type": "json_schema",
    "json_schema": {
        "name": "turn_decision",
        "strict": True,
        "schema": {
            "type": "object",
            "properties": {
                "decision": {"type": "string", "enum": list(DECISION_LABELS)},
            },
            "required": ["decision"],
            "additionalProperties": False,
        },
    },
}

DIRECT_QUESTION_PATTERNS = (
    re.compile(r"\?\s*$"),
    re.compile(
        r"^(what|who|when|where|why|how|which|cu[aá]l|qui[eé]n|cu[aá]ndo|"
        r"d[oó]nde|por qu[eé]|c[oó]mo|qu[eé] es)\b",
        re.IGNORECASE,
    ),
)

CLASSIFICATION_ERRORS = (
    openai.OpenAIError,
    ValueError,
    KeyError,
    TypeError,
    IndexError,
)


def format_time_of_day(timestamp_ms: int) -> str:
    moment = datetime.datetime.fromtimestamp(timestamp_ms / 1000, tz=datetime.UTC)
    return moment.strftime("%H:%M:%S")


class TurnDecisionEngine:
    """Decides whether a user's message completes a turn worth answering.

    Empty messages are settled without a model call: an attachment alone is
    answered, nothing at all is not. Everything else goes to a classification
    model with the recent transcript. Unexpected labels and model failures
    both resolve to answering.

    The engine keeps no state of its own; the outcome depends only on the
    message, the window snapshot and the clock.
    """

    def __init__(
        self,
        openai_api_key: str | None = None,
        model: str | None = None,
        window_seconds: int | None = None,
        max_context_messages: int | None = None,
        *,
        question_fast_path: bool | None = None,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the TurnDecisionEngine.

        Args:
            openai_api_key: OpenAI API key.
            model: Classification model. If None, uses config.DECISION_MODEL.
            window_seconds: Age limit of history shown to the model. If None,
                uses config.DECISION_WINDOW_SECONDS.
            max_context_messages: Cap on history messages shown. If None, uses
                config.DECISION_MAX_MESSAGES.
            question_fast_path: Answer obvious direct questions without a
                model call. If None, uses config.DECISION_QUESTION_FAST_PATH.
            client: Pre-built OpenAI client.
        """
        self.client = client or OpenAI(
            api_key=openai_api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=config.get_api_headers() or None,
        )
        self.model = model or config.DECISION_MODEL
        self.window_seconds = (
            window_seconds
            if window_seconds is not None
            else config.DECISION_WINDOW_SECONDS
        )
        self.max_context_messages = (
            max_context_messages
            if max_context_messages is not None
            else config.DECISION_MAX_MESSAGES
        )
        self.question_fast_path = (
            question_fast_path
            if question_fast_path is not None
            else config.DECISION_QUESTION_FAST_PATH
        )

    def should_respond(
        self,
        message: str,
        history: Sequence[ConversationMessage] = (),
        *,
        has_attachment: bool = False,
        now_ms: int | None = None,
    ) -> bool:
        """Decide whether to answer the current message now.

        Args:
            message: Text of the current message.
            history: Conversation window preceding the current message.
            has_attachment: Whether the current message carries an attachment.
            now_ms: Reference time in ms; defaults to the current time.

        Returns:
            True to respond now, False to wait for more messages.
        """
        text = message.strip()
        if not text:
            return has_attachment

        if self.question_fast_path and self.is_direct_question(text):
            logger.info("Direct question detected, responding immediately")
            return True

        now_ms = now_ms if now_ms is not None else current_timestamp_ms()
        transcript = self.build_transcript(
            message, history, now_ms, has_attachment=has_attachment
        )

        try:
            label = self.classify(transcript)
        except CLASSIFICATION_ERRORS:
            logger.exception("Turn decision failed; responding by default")
            return True

        logger.info(
            "Turn decision: %s for message %r (attachment: %s)",
            label,
            text,
            has_attachment,
        )
        return label != WAIT_FOR_MORE

    @staticmethod
    def is_direct_question(text: str) -> bool:
        return any(pattern.search(text) for pattern in DIRECT_QUESTION_PATTERNS)

    def recent_messages(
        self, history: Sequence[ConversationMessage], now_ms: int
    ) -> list[ConversationMessage]:
        """Select the history shown to the classifier.

        Returns:
            Messages newer than the window, at most ``max_context_messages``.
        """
        cutoff = now_ms - self.window_seconds * 1000
        recent = [item for item in history if item.timestamp > cutoff]
        return recent[-self.max_context_messages :] if self.max_context_messages else []

    def build_transcript(
        self,
        message: str,
        history: Sequence[ConversationMessage],
        now_ms: int,
        *,
        has_attachment: bool = False,
    ) -> str:
        """Render the recent conversation plus the current message.

        Returns:
            One line per message: time of day, role, text, attachment marker.
        """
        lines: list[str] = []
        recent = self.recent_messages(history, now_ms)
        if recent:
            lines.append("Recent conversation:")
            lines.extend(
                self._render_line(
                    item.content,
                    item.timestamp,
                    item.role,
                    has_attachment=item.has_attachment,
                )
                for item in recent
            )

        current = self._render_line(
            message, now_ms, "user", has_attachment=has_attachment
        )
        lines.append(f"Current message: {current}")
        return "\n".join(lines)

    def classify(self, transcript: str) -> str:
        """Ask the classification model for a decision label.

        Returns:
            The label the model produced.

        Raises:
            ValueError: If the model returned no content.
        """
        response = self.client.chat.completions.create(
            model=self.model,
            messages=[
                {
                    "role": "user",
                    "content": DECISION_PROMPT.format(transcript=transcript),
                }
            ],
            response_format=DECISION_RESPONSE_FORMAT,
            temperature=0,
        )
        content = response.choices[0].message.content
        if not content:
            msg = "Empty turn decision response"
            raise ValueError(msg)
        return json.loads(content)["decision"]

    @staticmethod
    def _render_line(
        text: str,
        timestamp_ms: int,
        role: str,
        *,
        has_attachment: bool,
    ) -> str:
        body = text.strip()
        if has_attachment:
            body = f"{body} {ATTACHMENT_MARKER}" if body else ATTACHMENT_MARKER
        return f"[{format_time_of_day(timestamp_ms)}] {role}: {body}"
