from abc import ABC, abstractmethod
from dataclasses import dataclass

import httpx


class EmailDeliveryError(Exception):
    """Raised when a provider refuses or cannot deliver a message."""

    def __init__(self, provider: str, message: str, status_code: int | None = None):
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str


class EmailProvider(ABC):
    """Abstract base class for outbound email providers."""

    name = "base"
    TIMEOUT_SECONDS = 15

    def __init__(self, sender_name: str, sender_address: str):
        self.sender_name = sender_name
        self.sender_address = sender_address

    @abstractmethod
    async def send(self, message: EmailMessage) -> None:
        """Deliver ``message``; raises EmailDeliveryError on any failure."""
        ...

    async def _post_json(self, url: str, headers: dict, payload: dict, ok_statuses: tuple[int, ...] = (200, 201, 202)) -> None:
        try:
            async with httpx.AsyncClient(timeout=self.TIMEOUT_SECONDS) as client:
                resp = await client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise EmailDeliveryError(self.name, f"network error: {exc}") from exc
        if resp.status_code not in ok_statuses:
            raise EmailDeliveryError(self.name, f"HTTP {resp.status_code}: {resp.text}", resp.status_code)
