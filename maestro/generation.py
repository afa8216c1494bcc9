"""Reply generation with the knowledge search exposed as a model tool."""

import json
from collections.abc import Callable, Sequence
from typing import Any

from openai import OpenAI

from .config import config
from .models import ConversationMessage
from .prompts import SYSTEM_PROMPT
from .retrieval import NOTHING_FOUND

logger = config.get_logger(__name__)

SEARCH_TOOL_NAME = "searchKnowledge"

SEARCH_KNOWLEDGE_TOOL = {
    "type": "function",
    "function": {
        "name": SEARCH_TOOL_NAME,
        "description": "Search the knowledge base for relevant information",
        "parameters": {
            "type": "object",
            "properties": {
                "queries": {
                    "type": "array",
                    "items": {"type": "string"},
                    "description": "Semantic search queries, 2-4 for complex questions",
                },
            },
            "required": ["queries"],
            "additionalProperties": False,
        },
    },
}

EMPTY_REPLY = "I'm sorry, I couldn't put together an answer. Could you rephrase?"


class ResponseGenerator:
    """Generates the assistant reply for a conversation window.

    The model may call ``searchKnowledge`` any number of times; the loop is
    bounded at ``max_steps`` model calls and the last call is made with tools
    disabled so it has to produce text.
    """

    def __init__(
        self,
        search_knowledge: Callable[[list[str]], str],
        openai_api_key: str | None = None,
        model: str | None = None,
        max_steps: int | None = None,
        max_tokens: int | None = None,
        temperature: float | None = None,
        system_prompt: str = SYSTEM_PROMPT,
        client: OpenAI | None = None,
    ) -> None:
        """Initialize the ResponseGenerator.

        Args:
            search_knowledge: Tool implementation, queries in, listing out.
            openai_api_key: OpenAI API key.
            model: Chat model. If None, uses config.CHAT_MODEL.
            max_steps: Bound on model calls per reply. If None, uses
                config.CHAT_MAX_STEPS.
            max_tokens: Reply token limit. If None, uses config.CHAT_MAX_TOKENS.
            temperature: Sampling temperature. If None, uses
                config.CHAT_TEMPERATURE.
            system_prompt: System instruction of the assistant.
            client: Pre-built OpenAI client.
        """
        self.search_knowledge = search_knowledge
        self.client = client or OpenAI(
            api_key=openai_api_key or config.get_openai_api_key(),
            base_url=config.OPENAI_BASE_URL,
            default_headers=config.get_api_headers() or None,
        )
        self.model = model or config.CHAT_MODEL
        if max_steps is None:
            max_steps = config.CHAT_MAX_STEPS
        self.max_steps = max(1, max_steps)
        if max_tokens is None:
            max_tokens = config.CHAT_MAX_TOKENS
        self.max_tokens = max_tokens
        self.temperature = (
            temperature if temperature is not None else config.CHAT_TEMPERATURE
        )
        self.system_prompt = system_prompt

    def build_messages(
        self,
        window: Sequence[ConversationMessage],
        image_data: str | None = None,
    ) -> list[dict[str, Any]]:
        """Convert the conversation window into chat messages.

        The image, when given, is attached to the latest user message.

        Returns:
            System instruction followed by the window, oldest first.
        """
        messages: list[dict[str, Any]] = [
            {"role": "system", "content": self.system_prompt}
        ]

        image_position = None
        if image_data:
            image_position = next(
                (
                    position
                    for position in range(len(window) - 1, -1, -1)
                    if window[position].role == "user"
                ),
                None,
            )

        for position, item in enumerate(window):
            text = item.content
            if item.has_attachment and not text.strip():
                text = "[attachment]"

            if position == image_position:
                messages.append({
                    "role": "user",
                    "content": [
                        {"type": "text", "text": text},
                        {
                            "type": "image_url",
                            "image_url": {"url": image_data, "detail": "low"},
                        },
                    ],
                })
            else:
                messages.append({"role": item.role, "content": text})

        return messages

    def generate(
        self,
        window: Sequence[ConversationMessage],
        image_data: str | None = None,
    ) -> str:
        """Run the tool loop until the model produces a final reply.

        Returns:
            The reply text.
        """
        messages = self.build_messages(window, image_data)

        for step in range(1, self.max_steps + 1):
            last_step = step == self.max_steps
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                tools=[SEARCH_KNOWLEDGE_TOOL],
                tool_choice="none" if last_step else "auto",
                max_tokens=self.max_tokens,
                temperature=self.temperature,
            )
            message = response.choices[0].message
            tool_calls = message.tool_calls or []

            if not tool_calls or last_step:
                reply = (message.content or "").strip()
                logger.info("Generated reply after %d step(s)", step)
                return reply or EMPTY_REPLY

            messages.append({
                "role": "assistant",
                "content": message.content,
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {
                            "name": call.function.name,
                            "arguments": call.function.arguments,
                        },
                    }
                    for call in tool_calls
                ],
            })
            for call in tool_calls:
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": self.run_tool(
                        call.function.name, call.function.arguments
                    ),
                })

        return EMPTY_REPLY

    def run_tool(self, name: str, arguments: str) -> str:
        """Execute one tool call requested by the model.

        Returns:
            The tool output handed back to the model.
        """
        if name != SEARCH_TOOL_NAME:
            logger.warning("Model requested unknown tool %s", name)
            return f"Unknown tool: {name}"

        try:
            queries = json.loads(arguments or "{}").get("queries", [])
        except (json.JSONDecodeError, AttributeError):
            logger.warning("Malformed %s arguments: %.200s", name, arguments)
            return NOTHING_FOUND

        if not isinstance(queries, list):
            queries = [queries]
        queries = [str(query) for query in queries if str(query).strip()]

        logger.info("Searching knowledge base: %s", queries)
        return self.search_knowledge(queries)
