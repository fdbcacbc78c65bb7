"""Connection protocol: interface for a live duplex client channel."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """Protocol that realtime connections must satisfy.

    ``aiohttp.web.WebSocketResponse`` satisfies it as-is.
    """

    @property
    def closed(self) -> bool:
        """True once the underlying transport is gone."""
        ...

    async def send_str(self, data: str) -> None:
        """Transmit one text frame."""
        ...

    async def close(self) -> bool:
        """Close the channel."""
        ...
