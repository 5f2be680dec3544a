"""
Status stream seam for push subscriptions.

The signing service publishes payload status events on a websocket per
payload. The broker depends on this protocol, not on the websocket
library, so tests can feed canned events.

Concrete implementations:
    - WebsocketStatusStream (default, uses ``websockets``)
    - FakeStream (tests)
"""

from __future__ import annotations

import json
import logging
from typing import Any, AsyncIterator, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class StatusStream(Protocol):
    """Source of decoded JSON status messages for one payload."""

    def events(self, url: str) -> AsyncIterator[dict[str, Any]]:
        """Yield status messages until the server closes the stream.

        Raises:
            Exception: On connection failures. The broker logs these and
                ends the subscription; the waiter's timer still applies.
        """
        ...


class WebsocketStatusStream:
    """Default stream reading JSON messages from a websocket.

    Lazily imports ``websockets`` so that importing the broker does not
    require it.
    """

    def __init__(self, open_timeout: float = 10.0) -> None:
        self._open_timeout = open_timeout

    async def events(self, url: str) -> AsyncIterator[dict[str, Any]]:
        import websockets

        async with websockets.connect(url, open_timeout=self._open_timeout) as ws:
            async for message in ws:
                try:
                    data = json.loads(message)
                except json.JSONDecodeError:
                    logger.debug("ignoring non-JSON status message: %r", message)
                    continue
                if isinstance(data, dict):
                    yield data
