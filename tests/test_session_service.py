import asyncio

import fakeredis
import pytest

from rehearsal.domain.board_reveal import BoardState
from rehearsal.domain.role_claims import DEALER_ROLE
from rehearsal.exceptions import RoleRequired, RoleUnavailable, SessionNotFound
from rehearsal.models.schema_models import SessionSchema
from rehearsal.services.document_store import InMemoryDocumentStore, RedisDocumentStore, decode_envelope
from rehearsal.services.session_service import SessionService


def _version(store, key: str) -> int:
    return decode_envelope(store._records.get(key))[0]


@pytest.mark.asyncio
async def test_reset_clears_claims_and_scenario(session_service) -> None:
    await session_service.start_or_reset_session()
    await session_service.claim_role("4", "alice")
    await session_service.generate_next_scenario(4, seed=1)

    session = await session_service.start_or_reset_session()
    assert session.is_active
    assert session.scenario is None
    assert set(session.claimed_roles.values()) == {None}
    assert await session_service.read_session() == session


@pytest.mark.asyncio
async def test_end_session_removes_the_record(session_service) -> None:
    await session_service.start_or_reset_session()
    await session_service.end_session()
    assert await session_service.read_session() is None
    with pytest.raises(SessionNotFound):
        await session_service.claim_role("1", "alice")


@pytest.mark.asyncio
async def test_concurrent_claims_on_one_slot_have_one_winner(session_service) -> None:
    await session_service.start_or_reset_session()
    identities = [f"identity-{n}" for n in range(5)]
    results = await asyncio.gather(
        *(session_service.claim_role("5", identity) for identity in identities),
        return_exceptions=True,
    )
    winners = [result for result in results if isinstance(result, SessionSchema)]
    losers = [result for result in results if isinstance(result, RoleUnavailable)]
    assert len(winners) == 1
    assert len(losers) == 4
    session = await session_service.read_session()
    assert session.claimed_roles["5"] == winners[0].claimed_roles["5"]
    assert session.claimed_roles["5"] in identities


@pytest.mark.asyncio
async def test_claiming_a_new_slot_vacates_the_old_one(session_service) -> None:
    await session_service.start_or_reset_session()
    await session_service.claim_role(3, "alice")
    session = await session_service.claim_role("7", "alice")
    assert session.claimed_roles["3"] is None
    assert session.claimed_roles["7"] == "alice"


@pytest.mark.asyncio
async def test_unknown_role_is_rejected(session_service) -> None:
    await session_service.start_or_reset_session()
    with pytest.raises(ValueError):
        await session_service.claim_role("10", "alice")


@pytest.mark.asyncio
async def test_release_without_session_is_a_noop(session_service) -> None:
    assert await session_service.release_role("alice") is None


@pytest.mark.asyncio
async def test_release_frees_the_slot_and_skips_empty_writes(session_service, store) -> None:
    await session_service.start_or_reset_session()
    await session_service.claim_role(DEALER_ROLE, "alice")
    session = await session_service.release_role("alice")
    assert session.claimed_roles[DEALER_ROLE] is None
    version = _version(store, session_service.session_key)
    await session_service.release_role("alice")
    assert _version(store, session_service.session_key) == version


@pytest.mark.asyncio
async def test_new_scenario_keeps_claims(session_service) -> None:
    await session_service.start_or_reset_session()
    await session_service.claim_role("2", "alice")
    session = await session_service.generate_next_scenario(6, seed=3)
    assert session.claimed_roles["2"] == "alice"
    assert session.scenario.num_players == 6
    assert session.scenario.game_state.board_state == BoardState.pre_deal


@pytest.mark.asyncio
async def test_generating_without_session_fails(session_service) -> None:
    with pytest.raises(SessionNotFound):
        await session_service.generate_next_scenario(3)


@pytest.mark.asyncio
async def test_only_the_dealer_reveals(session_service) -> None:
    await session_service.start_or_reset_session()
    await session_service.generate_next_scenario(3, seed=9)
    await session_service.claim_role("1", "alice")
    with pytest.raises(RoleRequired):
        await session_service.reveal_board_card(0, "alice")


@pytest.mark.asyncio
async def test_reveal_walks_the_board_forward_only(session_service, store) -> None:
    await session_service.start_or_reset_session()
    await session_service.claim_role(DEALER_ROLE, "dealer-id")
    await session_service.generate_next_scenario(3, seed=9)
    key = session_service.session_key

    version = _version(store, key)
    session = await session_service.reveal_board_card(3, "dealer-id")
    assert session.scenario.game_state.board_state == BoardState.pre_deal
    assert _version(store, key) == version

    session = await session_service.reveal_board_card(1, "dealer-id")
    assert session.scenario.game_state.board_state == BoardState.flop
    session = await session_service.reveal_board_card(3, "dealer-id")
    assert session.scenario.game_state.board_state == BoardState.turn
    session = await session_service.reveal_board_card(0, "dealer-id")
    assert session.scenario.game_state.board_state == BoardState.turn
    session = await session_service.reveal_board_card(4, "dealer-id")
    assert session.scenario.game_state.board_state == BoardState.river

    session = await session_service.generate_next_scenario(3, seed=10)
    assert session.scenario.game_state.board_state == BoardState.pre_deal


@pytest.mark.asyncio
async def test_reveal_before_any_scenario_changes_nothing(session_service) -> None:
    await session_service.start_or_reset_session()
    await session_service.claim_role(DEALER_ROLE, "dealer-id")
    session = await session_service.reveal_board_card(0, "dealer-id")
    assert session.scenario is None


@pytest.mark.asyncio
async def test_observer_follows_changes_until_the_session_ends(session_service) -> None:
    await session_service.start_or_reset_session()
    sessions = session_service.observe_session()
    first = await anext(sessions)
    assert first.claimed_roles["6"] is None

    await session_service.claim_role("6", "alice")
    second = await anext(sessions)
    assert second.claimed_roles["6"] == "alice"

    await session_service.end_session()
    assert await anext(sessions) is None
    with pytest.raises(StopAsyncIteration):
        await anext(sessions)


@pytest.mark.asyncio
async def test_observer_waits_for_a_session_to_start(session_service) -> None:
    sessions = session_service.observe_session()
    assert await anext(sessions) is None
    await session_service.start_or_reset_session()
    session = await anext(sessions)
    assert session.is_active
    await sessions.aclose()


@pytest.mark.asyncio
async def test_reset_never_fails_while_a_claim_is_in_flight() -> None:
    session_service = SessionService(InMemoryDocumentStore(max_retries=1))
    await session_service.start_or_reset_session()
    results = await asyncio.gather(
        session_service.claim_role("5", "alice"),
        session_service.start_or_reset_session(),
        return_exceptions=True,
    )
    assert isinstance(results[1], SessionSchema)
    session = await session_service.read_session()
    assert set(session.claimed_roles.values()) == {None}


@pytest.fixture
def redis_session_service() -> SessionService:
    redis = fakeredis.aioredis.FakeRedis(server=fakeredis.FakeServer(), decode_responses=True)
    return SessionService(RedisDocumentStore(redis, namespace="test"))


@pytest.mark.asyncio
async def test_concurrent_claims_on_redis_have_one_winner(redis_session_service) -> None:
    await redis_session_service.start_or_reset_session()
    identities = [f"identity-{n}" for n in range(5)]
    results = await asyncio.gather(
        *(redis_session_service.claim_role("5", identity) for identity in identities),
        return_exceptions=True,
    )
    winners = [result for result in results if isinstance(result, SessionSchema)]
    losers = [result for result in results if isinstance(result, RoleUnavailable)]
    assert len(winners) == 1
    assert len(losers) == 4
    session = await redis_session_service.read_session()
    assert session.claimed_roles["5"] == winners[0].claimed_roles["5"]


@pytest.mark.asyncio
async def test_observer_on_redis_follows_claims_until_the_end(redis_session_service) -> None:
    await redis_session_service.start_or_reset_session()
    sessions = redis_session_service.observe_session()
    first = await asyncio.wait_for(anext(sessions), 5)
    assert first.claimed_roles["5"] is None

    await redis_session_service.claim_role("5", "alice")
    second = await asyncio.wait_for(anext(sessions), 5)
    assert second.claimed_roles["5"] == "alice"

    await redis_session_service.end_session()
    assert await asyncio.wait_for(anext(sessions), 5) is None
    with pytest.raises(StopAsyncIteration):
        await anext(sessions)
