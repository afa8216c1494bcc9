"""WhatsApp Cloud API client: reply delivery and media download."""

import base64
from typing import Any

import httpx

from .config import config
from .models import OutboundMessage

logger = config.get_logger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"


class WhatsAppClient:
    """Thin client over the WhatsApp Cloud (Graph) API."""

    def __init__(
        self,
        access_token: str | None = None,
        phone_number_id: str | None = None,
        base_url: str | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        """Initialize the WhatsAppClient.

        Args:
            access_token: Graph API bearer token. If None, uses
                config.WHATSAPP_ACCESS_TOKEN.
            phone_number_id: Sending phone number id. If None, uses
                config.WHATSAPP_PHONE_NUMBER_ID.
            base_url: Versioned Graph API root. If None, uses
                config.WHATSAPP_API_BASE_URL.
            http_client: Pre-built httpx client.
        """
        self.access_token = access_token or config.WHATSAPP_ACCESS_TOKEN
        self.phone_number_id = phone_number_id or config.WHATSAPP_PHONE_NUMBER_ID
        self.base_url = (base_url or config.WHATSAPP_API_BASE_URL).rstrip("/")
        self.http = http_client or httpx.Client(headers=config.get_api_headers())

    @property
    def auth_headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.access_token}"}

    def send_message(self, outbound: OutboundMessage) -> dict[str, Any]:
        """Deliver a text reply.

        Returns:
            The Graph API response body.

        Raises:
            httpx.HTTPError: If the request fails or is rejected.
        """
        payload = {
            "messaging_product": "whatsapp",
            "to": outbound.conversation_id,
            "type": "text",
            "text": {"body": outbound.text},
        }
        response = self.http.post(
            f"{self.base_url}/{self.phone_number_id}/messages",
            json=payload,
            headers=self.auth_headers,
        )
        if response.is_error:
            logger.error(
                "Failed to send message: %s %s", response.status_code, response.text
            )
        response.raise_for_status()

        result = response.json()
        logger.info("Message sent to %s", outbound.conversation_id)
        return result

    def download_media(self, media_id: str) -> str | None:
        """Download an attachment as a data URL.

        Returns:
            ``data:<mime>;base64,...``, or None when the media is unavailable.
        """
        try:
            meta = self.http.get(
                f"{self.base_url}/{media_id}", headers=self.auth_headers
            )
            if meta.is_error:
                logger.error("Failed to get media URL: %s", meta.status_code)
                return None
            media_url = meta.json()["url"]

            file_response = self.http.get(media_url, headers=self.auth_headers)
            if file_response.is_error:
                logger.error(
                    "Failed to download media: %s", file_response.status_code
                )
                return None
        except (httpx.HTTPError, KeyError, TypeError, ValueError):
            logger.exception("Error downloading media %s", media_id)
            return None

        mime_type = file_response.headers.get("content-type") or DEFAULT_MIME_TYPE
        encoded = base64.b64encode(file_response.content).decode("ascii")
        return f"data:{mime_type};base64,{encoded}"

    def close(self) -> None:
        self.http.close()
