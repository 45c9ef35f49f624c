import logging

from fastapi import APIRouter, Depends, HTTPException, Path, Request, Response, status

from rehearsal.authentication.identity_authentication import check_identity
from rehearsal.converter import ViewConverter
from rehearsal.domain.role_claims import DEALER_ROLE
from rehearsal.exceptions import (
    RehearsalError,
    RoleRequired,
    RoleUnavailable,
    SessionNotFound,
    TransactionConflict,
)
from rehearsal.manager import ConnectionManager
from rehearsal.models.dc_models import (
    DealerViewModel,
    DirectorViewModel,
    LobbyViewModel,
    NewScenarioModel,
)
from rehearsal.models.identity_models import IdentityModel, SignInModel
from rehearsal.models.schema_models import SessionSchema
from rehearsal.services.session_service import SessionService

rehearsal_router = APIRouter()
view_converter = ViewConverter()

_STATUS_CODES = {
    SessionNotFound: status.HTTP_404_NOT_FOUND,
    RoleUnavailable: status.HTTP_409_CONFLICT,
    RoleRequired: status.HTTP_403_FORBIDDEN,
    TransactionConflict: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def get_session_service(request: Request) -> SessionService:
    return request.app.state.session_service


def get_connection_manager(request: Request) -> ConnectionManager:
    return request.app.state.connection_manager


def to_http_exception(error: RehearsalError) -> HTTPException:
    """Translate a domain error into the response the client sees."""
    status_code = _STATUS_CODES.get(type(error), status.HTTP_400_BAD_REQUEST)
    if isinstance(error, TransactionConflict):
        logging.warning(f"Giving up after contention: {error}")
        return HTTPException(status_code=status_code, detail="The rehearsal is busy, try again.")
    return HTTPException(status_code=status_code, detail=str(error))


async def require_session(session_service: SessionService) -> SessionSchema:
    session = await session_service.read_session()
    if session is None:
        raise to_http_exception(SessionNotFound())
    return session


class AuthServer:
    @staticmethod
    @rehearsal_router.post("/auth/anonymous", response_model=SignInModel)
    async def sign_in_anonymously(request: Request) -> SignInModel:
        """Issue an identity for a new participant

        Returns:
            SignInModel: The identity id and the bearer token to send from now on
        """
        return await request.app.state.identity_auth.sign_in_anonymously()


class DirectorServer:
    @staticmethod
    @rehearsal_router.post("/director/session", response_model=DirectorViewModel)
    async def start_session(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
        connection_manager: ConnectionManager = Depends(get_connection_manager),
    ) -> DirectorViewModel:
        """Start the rehearsal, or reset it if one is already running

        Every claimed role and the current scenario are discarded.
        """
        logging.info(f"Director {identity.identity_id} starts the session")
        try:
            session = await session_service.start_or_reset_session()
        except RehearsalError as error:
            raise to_http_exception(error)
        return view_converter.convert_session_to_director_view(session, connection_manager.connected_seats())

    @staticmethod
    @rehearsal_router.delete("/director/session", status_code=status.HTTP_204_NO_CONTENT)
    async def end_session(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ) -> Response:
        """End the rehearsal; every open stream receives session_ended"""
        logging.info(f"Director {identity.identity_id} ends the session")
        try:
            await session_service.end_session()
        except RehearsalError as error:
            raise to_http_exception(error)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    @staticmethod
    @rehearsal_router.post("/director/scenario", response_model=DirectorViewModel)
    async def generate_scenario(
        new_scenario: NewScenarioModel,
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
        connection_manager: ConnectionManager = Depends(get_connection_manager),
    ) -> DirectorViewModel:
        """Generate and publish the next scenario

        Args:
            new_scenario (NewScenarioModel):
                    num_players: int, 2 to 9
                    seed: optional seed to replay a round
        """
        try:
            session = await session_service.generate_next_scenario(new_scenario.num_players, new_scenario.seed)
        except RehearsalError as error:
            raise to_http_exception(error)
        return view_converter.convert_session_to_director_view(session, connection_manager.connected_seats())

    @staticmethod
    @rehearsal_router.get("/director/view", response_model=DirectorViewModel)
    async def director_view(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
        connection_manager: ConnectionManager = Depends(get_connection_manager),
    ) -> DirectorViewModel:
        session = await require_session(session_service)
        return view_converter.convert_session_to_director_view(session, connection_manager.connected_seats())


class LobbyServer:
    @staticmethod
    @rehearsal_router.get("/lobby", response_model=LobbyViewModel)
    async def lobby_view(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ) -> LobbyViewModel:
        session = await require_session(session_service)
        return view_converter.convert_session_to_lobby_view(session, identity.identity_id)

    @staticmethod
    @rehearsal_router.post("/roles/{role_id}/claim", response_model=LobbyViewModel)
    async def claim_role(
        role_id: str,
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ) -> LobbyViewModel:
        """Claim a seat ("1" to "9") or "dealer"

        A role the caller already holds elsewhere is released in the same step.
        """
        try:
            session = await session_service.claim_role(role_id, identity.identity_id)
        except ValueError as error:
            raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=str(error))
        except RehearsalError as error:
            raise to_http_exception(error)
        return view_converter.convert_session_to_lobby_view(session, identity.identity_id)

    @staticmethod
    @rehearsal_router.post("/roles/leave", response_model=LobbyViewModel)
    async def leave(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ) -> LobbyViewModel:
        """Give up whatever role the caller holds"""
        try:
            session = await session_service.release_role(identity.identity_id)
        except RehearsalError as error:
            raise to_http_exception(error)
        if session is None:
            raise to_http_exception(SessionNotFound())
        return view_converter.convert_session_to_lobby_view(session, identity.identity_id)


class DealerServer:
    @staticmethod
    @rehearsal_router.get("/dealer/view", response_model=DealerViewModel)
    async def dealer_view(
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ) -> DealerViewModel:
        session = await require_session(session_service)
        if session.claimed_roles[DEALER_ROLE] != str(identity.identity_id):
            raise to_http_exception(RoleRequired(DEALER_ROLE))
        return view_converter.convert_session_to_dealer_view(session)

    @staticmethod
    @rehearsal_router.post("/dealer/reveal/{card_index}", response_model=DealerViewModel)
    async def reveal(
        card_index: int = Path(ge=0, le=4),
        identity: IdentityModel = Depends(check_identity),
        session_service: SessionService = Depends(get_session_service),
    ) -> DealerViewModel:
        """Tap a board card

        Taps out of street order are ignored and return the unchanged board.
        """
        try:
            session = await session_service.reveal_board_card(card_index, identity.identity_id)
        except RehearsalError as error:
            raise to_http_exception(error)
        return view_converter.convert_session_to_dealer_view(session)
