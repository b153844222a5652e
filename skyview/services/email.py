from __future__ import annotations

from typing import Optional

import httpx

from skyview.config import EmailConfig, app_config
from skyview.errors import EmailConfigurationError, EmailSendError
from skyview.logging import get_logger

logger = get_logger(__name__)


class EmailSender:
    """Sends transactional e-mail through the Resend HTTP API."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        *,
        config: Optional[EmailConfig] = None,
    ) -> None:
        self.config = config or app_config.email
        self.client = client or httpx.AsyncClient(timeout=self.config.timeout)

    async def send(self, *, to: str, subject: str, html: str) -> None:
        if not self.config.api_key or not self.config.sender:
            raise EmailConfigurationError("Missing RESEND_API_KEY or RESEND_FROM")

        try:
            response = await self.client.post(
                self.config.api_url,
                headers={"Authorization": f"Bearer {self.config.api_key}"},
                json={
                    "from": self.config.sender,
                    "to": to,
                    "subject": subject,
                    "html": html,
                },
            )
        except httpx.HTTPError as exc:
            raise EmailSendError(f"Email send failed: {exc}") from exc

        if not response.is_success:
            logger.warning("email.rejected", to=to, status_code=response.status_code)
            raise EmailSendError(f"Email send failed: {response.text}")

        logger.info("email.sent", to=to)

    async def aclose(self) -> None:
        await self.client.aclose()
