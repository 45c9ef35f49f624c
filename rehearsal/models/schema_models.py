from typing import Annotated, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, Field, field_validator, model_validator

from rehearsal.domain.board_reveal import BOARD_SIZE, BoardState
from rehearsal.domain.deck import validate_card_code
from rehearsal.domain.role_claims import ROLE_IDS

CardCode = Annotated[str, AfterValidator(validate_card_code)]
SeatNumber = Annotated[int, Field(ge=1, le=9)]


class HandSchema(BaseModel):
    role: Literal["NP", "OP"]
    cards: List[CardCode] = Field(min_length=2, max_length=2)
    position: SeatNumber


class HandInfoSchema(BaseModel):
    title: str
    board: List[CardCode] = Field(min_length=BOARD_SIZE, max_length=BOARD_SIZE)
    hands: List[HandSchema]


class PositionsSchema(BaseModel):
    np: SeatNumber
    op: List[SeatNumber]
    all: List[SeatNumber]

    @field_validator("all")
    @classmethod
    def _distinct_seats(cls, seats: List[int]) -> List[int]:
        if len(set(seats)) != len(seats):
            raise ValueError("seats must be distinct")
        return seats


class CameraRuleSchema(BaseModel):
    """Published projection of a camera rule; the selection predicate is never stored."""

    id: int
    title: str
    main_cam: str
    sub_cam: str
    note: Optional[str] = None


class GameStateSchema(BaseModel):
    board_state: BoardState = BoardState.pre_deal


class ScenarioSchema(BaseModel):
    hand_info: HandInfoSchema
    positions: PositionsSchema
    rule: CameraRuleSchema
    game_state: GameStateSchema
    player_hands: Dict[int, List[CardCode]]
    num_players: int = Field(ge=2, le=9)

    @model_validator(mode="after")
    def _seats_match_player_count(self) -> "ScenarioSchema":
        if len(self.positions.all) != self.num_players:
            raise ValueError("positions.all must hold num_players seats")
        return self


class SessionSchema(BaseModel):
    """The single shared rehearsal record."""

    is_active: bool
    claimed_roles: Dict[str, Optional[str]]
    scenario: Optional[ScenarioSchema] = None

    @field_validator("claimed_roles")
    @classmethod
    def _all_role_slots(cls, claimed_roles: Dict[str, Optional[str]]) -> Dict[str, Optional[str]]:
        if set(claimed_roles) != set(ROLE_IDS):
            raise ValueError(f"claimed_roles must have exactly the slots {ROLE_IDS}")
        return {role_id: claimed_roles[role_id] for role_id in ROLE_IDS}

    def to_document(self) -> dict:
        return self.model_dump(mode="json")
