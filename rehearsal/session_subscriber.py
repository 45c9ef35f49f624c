import logging
from contextlib import aclosing
from typing import AsyncGenerator, Callable, Optional

from pydantic import BaseModel

from rehearsal.models.schema_models import SessionSchema
from rehearsal.services.session_service import SessionService


class SessionSubscriber:
    """Session subscriber class to handle SSE events."""

    def __init__(
        self,
        session_service: SessionService,
        render: Callable[[SessionSchema], BaseModel],
        authorize: Optional[Callable[[SessionSchema], bool]] = None,
    ):
        """Initialize SessionSubscriber with the service and the view to render per snapshot.

        ``authorize`` is checked against every snapshot; once it fails the
        stream is closed.
        """
        self.session_service: SessionService = session_service
        self.render: Callable[[SessionSchema], BaseModel] = render
        self.authorize: Optional[Callable[[SessionSchema], bool]] = authorize

    async def event_generator(self) -> AsyncGenerator[str, None]:
        """Event generator to handle SSE events.

        Emits ``session_update`` with the rendered view for every committed
        change, ``session_missing`` while no session is active, and a final
        ``session_ended`` once a live session goes away. A snapshot the
        viewer may no longer see ends the stream with ``access_revoked``.
        """
        live = False
        async with aclosing(self.session_service.observe_session()) as sessions:
            async for session in sessions:
                if session is None:
                    if live:
                        break
                    yield "event: session_missing\ndata: {}\n\n"
                    continue
                if self.authorize is not None and not self.authorize(session):
                    logging.info("Session stream access revoked")
                    yield "event: access_revoked\ndata: {}\n\n"
                    return
                live = True
                payload = self.render(session).model_dump_json()
                logging.debug(f"Payload: {payload}")
                yield f"event: session_update\ndata: {payload}\n\n"
        logging.info("Session stream finished")
        yield "event: session_ended\ndata: {}\n\n"
