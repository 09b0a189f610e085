"""Response types with delivery tracking."""

from __future__ import annotations

from typing import Optional

import anyio
import anyio.lowlevel
from anyio.abc import TaskGroup
from starlette.background import BackgroundTask
from starlette.requests import ClientDisconnect
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from services.delivery import DeliveryReceipt


class AcknowledgedResponse(Response):
    """Attachment response that resolves a receipt once the body is sent.

    The send runs next to a ``receive()`` listener, as in Starlette's
    ``StreamingResponse``: servers such as uvicorn drop writes to a vanished
    client silently and only report ``http.disconnect``. The receipt is
    acknowledged when the final body message went out with no disconnect seen
    first; it is failed on a send error or an earlier disconnect. The
    background task runs after the receipt is resolved in every case.
    """

    def __init__(
        self,
        content: bytes,
        receipt: DeliveryReceipt,
        *,
        filename: str,
        media_type: str,
        background: Optional[BackgroundTask] = None,
    ) -> None:
        super().__init__(
            content=content,
            media_type=media_type,
            headers={"Content-Disposition": f'attachment; filename="{filename}"'},
            background=background,
        )
        self.receipt = receipt

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        body_sent = False
        disconnected = False
        send_error: Optional[Exception] = None

        async def listen_for_disconnect(task_group: TaskGroup) -> None:
            nonlocal disconnected
            while True:
                message = await receive()
                if message["type"] == "http.disconnect":
                    break
            # Servers also report a disconnect once the response is complete.
            disconnected = not body_sent
            if disconnected:
                task_group.cancel_scope.cancel()

        async def transmit(task_group: TaskGroup) -> None:
            nonlocal body_sent, send_error
            try:
                await anyio.lowlevel.checkpoint()
                if disconnected:
                    return
                await send(
                    {
                        "type": "http.response.start",
                        "status": self.status_code,
                        "headers": self.raw_headers,
                    }
                )
                await anyio.lowlevel.checkpoint()
                if disconnected:
                    return
                await send({"type": "http.response.body", "body": self.body})
                body_sent = True
            except Exception as exc:
                send_error = exc
            finally:
                task_group.cancel_scope.cancel()

        async with anyio.create_task_group() as task_group:
            task_group.start_soon(listen_for_disconnect, task_group)
            await transmit(task_group)

        if send_error is not None:
            self.receipt.fail(send_error)
        elif disconnected or not body_sent:
            self.receipt.fail(
                ClientDisconnect("Client disconnected before the export was delivered.")
            )
        else:
            self.receipt.acknowledge()

        if self.background is not None:
            await self.background()
