"""Session service layer for rehearsal use cases.

- Routers and connection handlers call this module; they never touch the store.
- Every change to the session record is exactly one store transaction.
- Rules come from rehearsal.domain; this layer owns the transaction boundaries.
"""

import logging
from contextlib import aclosing
from typing import AsyncIterator, Iterable, Optional

import numpy as np

from rehearsal import settings
from rehearsal.domain import role_claims
from rehearsal.domain.board_reveal import next_board_state
from rehearsal.domain.role_claims import DEALER_ROLE, empty_claims, normalize_role_id
from rehearsal.domain.scenario_generator import generate_scenario
from rehearsal.exceptions import RoleRequired, SessionNotFound
from rehearsal.models.schema_models import ScenarioSchema, SessionSchema
from rehearsal.services.document_store import DocumentStore


def _active_session(document: Optional[dict]) -> Optional[SessionSchema]:
    if document is None:
        return None
    session = SessionSchema.model_validate(document)
    return session if session.is_active else None


def _require_active(document: Optional[dict]) -> SessionSchema:
    session = _active_session(document)
    if session is None:
        raise SessionNotFound()
    return session


class SessionService:
    """Lifecycle, role claims, scenarios and board reveal for the live session."""

    def __init__(self, store: DocumentStore, session_key: str = settings.session_key):
        self.store = store
        self.session_key = session_key

    # ---------------------------------------------------------------- lifecycle
    async def start_or_reset_session(self) -> SessionSchema:
        """Write a fresh session, discarding every claim and scenario."""
        session = SessionSchema(is_active=True, claimed_roles=empty_claims(), scenario=None)
        await self.store.set(self.session_key, session.to_document())
        logging.info(f"Rehearsal session {self.session_key} started")
        return session

    async def end_session(self) -> None:
        await self.store.delete(self.session_key)
        logging.info(f"Rehearsal session {self.session_key} ended")

    async def read_session(self) -> Optional[SessionSchema]:
        return _active_session(await self.store.get(self.session_key))

    async def observe_session(self) -> AsyncIterator[Optional[SessionSchema]]:
        """Yield the current session and then every committed change.

        None is yielded while there is no active session. Once a live session
        disappears, one None is yielded and the stream stops.
        """
        seen_live = False
        async with aclosing(self.store.subscribe(self.session_key)) as documents:
            async for document in documents:
                session = _active_session(document)
                yield session
                if session is None and seen_live:
                    return
                seen_live = seen_live or session is not None

    # ---------------------------------------------------------------- scenarios
    async def publish_scenario(self, scenario: ScenarioSchema) -> SessionSchema:
        """Replace the scenario wholesale; claims are left as they are."""
        scenario_document = scenario.model_dump(mode="json")

        def replace_scenario(document: Optional[dict]) -> dict:
            _require_active(document)
            return {**document, "scenario": scenario_document}

        document = await self.store.transact(self.session_key, replace_scenario)
        return SessionSchema.model_validate(document)

    async def generate_next_scenario(self, num_players: int, seed: Optional[int] = None) -> SessionSchema:
        """Generate a scenario for ``num_players`` seats and publish it.

        Args:
            num_players (int): Active seats, 2 to 9
            seed (int, optional): Seed to reproduce a round. Defaults to fresh entropy.
        """
        rng = np.random.default_rng(seed)
        scenario = ScenarioSchema.model_validate(generate_scenario(num_players, rng))
        session = await self.publish_scenario(scenario)
        logging.info(
            f"Scenario '{scenario.hand_info.title}' published: "
            f"seats={scenario.positions.all}, np={scenario.positions.np}, rule={scenario.rule.id}"
        )
        return session

    # ---------------------------------------------------------------- role claims
    async def claim_role(self, role_id, identity_id) -> SessionSchema:
        """Move ``identity_id`` into ``role_id``, vacating its previous slot.

        Raises:
            SessionNotFound: no active session
            RoleUnavailable: the slot belongs to another identity
        """
        role_id = normalize_role_id(role_id)
        identity_id = str(identity_id)

        def claim(document: Optional[dict]) -> dict:
            session = _require_active(document)
            claims = role_claims.claim_role(session.claimed_roles, role_id, identity_id)
            if claims == session.claimed_roles:
                return document
            return {**document, "claimed_roles": claims}

        document = await self.store.transact(self.session_key, claim)
        logging.info(f"Identity {identity_id} holds role {role_id}")
        return SessionSchema.model_validate(document)

    async def release_role(self, identity_id) -> Optional[SessionSchema]:
        return await self.release_roles([identity_id])

    async def release_roles(self, identity_ids: Iterable) -> Optional[SessionSchema]:
        """Clear every slot held by ``identity_ids``; a no-op without a session."""
        leaving = [str(identity_id) for identity_id in identity_ids]

        def release(document: Optional[dict]) -> Optional[dict]:
            session = _active_session(document)
            if session is None:
                return document
            claims = role_claims.release_roles(session.claimed_roles, leaving)
            if claims == session.claimed_roles:
                return document
            return {**document, "claimed_roles": claims}

        document = await self.store.transact(self.session_key, release)
        logging.info(f"Released roles of {leaving}")
        return _active_session(document)

    # ---------------------------------------------------------------- board reveal
    async def reveal_board_card(self, card_index: int, identity_id) -> SessionSchema:
        """Apply a dealer tap on board card ``card_index``.

        Out-of-order taps and taps before any scenario exists change nothing.

        Raises:
            SessionNotFound: no active session
            RoleRequired: ``identity_id`` does not hold the dealer slot
        """
        identity_id = str(identity_id)

        def reveal(document: Optional[dict]) -> dict:
            session = _require_active(document)
            if session.claimed_roles[DEALER_ROLE] != identity_id:
                raise RoleRequired(DEALER_ROLE)
            if session.scenario is None:
                return document
            current = session.scenario.game_state.board_state
            new_state = next_board_state(current, card_index)
            if new_state == current:
                return document
            session.scenario.game_state.board_state = new_state
            return session.to_document()

        document = await self.store.transact(self.session_key, reveal)
        session = SessionSchema.model_validate(document)
        if session.scenario is not None:
            logging.info(f"Dealer tapped card {card_index}: board is {session.scenario.game_state.board_state.value}")
        return session
