import asyncio
import logging
from contextlib import aclosing
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, WebSocket, WebSocketDisconnect, status
from fastapi.responses import StreamingResponse
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from rehearsal.authentication.identity_authentication import check_identity
from rehearsal.domain.hole_card_flip import HoleCardFlip
from rehearsal.domain.role_claims import DEALER_ROLE, SEAT_ROLES
from rehearsal.exceptions import RoleRequired
from rehearsal.manager import ConnectionManager
from rehearsal.models.dc_models import PlayerActionModel
from rehearsal.models.identity_models import IdentityModel
from rehearsal.models.schema_models import SessionSchema
from rehearsal.routers.rehearsal import (
    get_connection_manager,
    get_session_service,
    require_session,
    to_http_exception,
    view_converter,
)
from rehearsal.services.session_service import SessionService
from rehearsal.session_subscriber import SessionSubscriber

live_router = APIRouter()

_SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


def _event_stream(subscriber: SessionSubscriber) -> StreamingResponse:
    return StreamingResponse(
        subscriber.event_generator(),
        media_type="text/event-stream; charset=utf-8",
        headers=_SSE_HEADERS,
    )


class StreamServer:
    @staticmethod
    @live_router.get("/stream/lobby")
    async def stream_lobby(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ):
        subscriber = SessionSubscriber(
            session_service,
            lambda session: view_converter.convert_session_to_lobby_view(session, identity.identity_id),
        )
        return _event_stream(subscriber)

    @staticmethod
    @live_router.get("/stream/director")
    async def stream_director(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
        connection_manager: ConnectionManager = Depends(get_connection_manager),
    ):
        subscriber = SessionSubscriber(
            session_service,
            lambda session: view_converter.convert_session_to_director_view(
                session, connection_manager.connected_seats()
            ),
        )
        return _event_stream(subscriber)

    @staticmethod
    @live_router.get("/stream/dealer")
    async def stream_dealer(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ):
        identity_id = str(identity.identity_id)

        def holds_dealer(session: SessionSchema) -> bool:
            return session.claimed_roles[DEALER_ROLE] == identity_id

        session = await require_session(session_service)
        if not holds_dealer(session):
            raise to_http_exception(RoleRequired(DEALER_ROLE))
        subscriber = SessionSubscriber(
            session_service, view_converter.convert_session_to_dealer_view, authorize=holds_dealer
        )
        return _event_stream(subscriber)


class PlayerConnection:
    """One player's websocket: pushes the player view and owns the hole-card flip state."""

    def __init__(
        self,
        websocket: WebSocket,
        seat: int,
        identity: IdentityModel,
        session_service: SessionService,
        connection_manager: ConnectionManager,
    ):
        self.websocket = websocket
        self.seat = seat
        self.identity = identity
        self.session_service = session_service
        self.connection_manager = connection_manager
        self.flip = HoleCardFlip()
        self.session: Optional[SessionSchema] = None

    def _view(self):
        return view_converter.convert_session_to_player_view(
            self.session, self.seat, self.identity.identity_id, self.flip
        )

    async def push_view(self):
        await self.connection_manager.send_personal_message(self._view().model_dump(mode="json"), self.websocket)

    async def forward_session_updates(self):
        async with aclosing(self.session_service.observe_session()) as sessions:
            async for session in sessions:
                self.session = session
                scenario = session.scenario if session is not None else None
                self.flip.observe(scenario.game_state.board_state if scenario is not None else None)
                await self.push_view()
        await self.connection_manager.send_personal_message({"event": "session_ended"}, self.websocket)

    async def receive_actions(self):
        while True:
            raw = await self.websocket.receive_text()
            try:
                action = PlayerActionModel.model_validate_json(raw)
            except ValidationError:
                logging.warning(f"Ignoring malformed player message at seat {self.seat}: {raw[:200]!r}")
                continue
            if action.action == "toggle":
                if self._view().has_hand and self.flip.toggle(action.card_index):
                    await self.push_view()
            elif action.action == "leave":
                await self.session_service.release_role(self.identity.identity_id)
                logging.info(f"Player {self.identity.identity_id} left seat {self.seat}")
                return
            else:
                logging.warning(f"Unknown player action at seat {self.seat}: {action.action}")

    async def run(self):
        tasks = [
            asyncio.create_task(self.forward_session_updates()),
            asyncio.create_task(self.receive_actions()),
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in done:
                task.result()
        except WebSocketDisconnect:
            logging.info(f"Player websocket at seat {self.seat} disconnected")
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)


@live_router.websocket("/ws/player/{seat}")
async def player_websocket(websocket: WebSocket, seat: int, token: str = ""):
    """Player screen connection.

    Client messages: ``{"action": "toggle", "card_index": 0|1}`` and
    ``{"action": "leave"}``. The server pushes the player view after every
    session change and every toggle.
    """
    app = websocket.app
    if str(seat) not in SEAT_ROLES:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="Unknown seat")
        return
    try:
        identity = await app.state.identity_auth.check_token(token)
    except HTTPException as exc:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason=exc.detail)
        return

    connection_manager: ConnectionManager = app.state.connection_manager
    await connection_manager.connect(websocket, seat)
    connection = PlayerConnection(websocket, seat, identity, app.state.session_service, connection_manager)
    try:
        await connection.run()
    finally:
        connection_manager.disconnect(websocket, seat)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
