"""FastAPI application receiving WhatsApp Cloud API webhooks."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI, Query
from fastapi.responses import JSONResponse, PlainTextResponse

from .assistant import Assistant, create_assistant
from .config import config
from .models import InboundMessage
from .whatsapp import WhatsAppClient

logger = config.get_logger(__name__)

WEBHOOK_PATH = "/api/webhook"
BUSINESS_ACCOUNT_OBJECT = "whatsapp_business_account"


def extract_inbound_messages(payload: dict[str, Any]) -> list[InboundMessage]:
    """Normalize a webhook payload into user turns.

    Text messages and images (with optional caption) are kept; other message
    types and messages without a sender are skipped.

    Returns:
        Inbound messages in payload order.
    """
    if payload.get("object") != BUSINESS_ACCOUNT_OBJECT:
        return []

    inbound: list[InboundMessage] = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            if change.get("field") != "messages":
                continue
            for message in (change.get("value") or {}).get("messages") or []:
                sender = message.get("from")
                if not sender:
                    logger.warning("Skipping message without sender")
                    continue

                message_type = message.get("type")
                if message_type == "text":
                    text = (message.get("text") or {}).get("body") or ""
                    inbound.append(InboundMessage(conversation_id=sender, text=text))
                elif message_type == "image":
                    image = message.get("image") or {}
                    inbound.append(
                        InboundMessage(
                            conversation_id=sender,
                            text=image.get("caption") or "",
                            attachment_id=image.get("id"),
                        )
                    )
                else:
                    logger.info("Ignoring %s message from %s", message_type, sender)
    return inbound


def create_app(
    assistant: Assistant | None = None,
    verify_token: str | None = None,
) -> FastAPI:
    """Create the webhook application.

    Args:
        assistant: Assistant handling each message. If None, one is built
            from configuration with WhatsApp delivery and media download.
        verify_token: Subscription token. If None, uses
            config.WHATSAPP_VERIFY_TOKEN.

    Returns:
        The FastAPI app.
    """
    if assistant is None:
        whatsapp = WhatsAppClient()
        assistant = create_assistant(
            sink=whatsapp.send_message, media_fetcher=whatsapp.download_media
        )
    expected_token = verify_token or config.WHATSAPP_VERIFY_TOKEN

    app = FastAPI(title="Maestro Assistant Webhook")

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get(WEBHOOK_PATH)
    def verify(
        mode: str | None = Query(default=None, alias="hub.mode"),
        token: str | None = Query(default=None, alias="hub.verify_token"),
        challenge: str = Query(default="", alias="hub.challenge"),
    ) -> PlainTextResponse:
        if mode == "subscribe" and expected_token and token == expected_token:
            logger.info("Webhook verified successfully")
            return PlainTextResponse(challenge)
        logger.warning("Webhook verification failed")
        return PlainTextResponse("Forbidden", status_code=403)

    @app.post(WEBHOOK_PATH)
    def receive(payload: dict[str, Any]) -> JSONResponse:
        messages = extract_inbound_messages(payload)
        for inbound in messages:
            logger.info("Message from %s: %s", inbound.conversation_id, inbound.text)
            assistant.handle_message(inbound)
        return JSONResponse({"status": "success"})

    return app
