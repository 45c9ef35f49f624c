from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from rehearsal.domain.board_reveal import BoardState
from rehearsal.models.schema_models import CameraRuleSchema, ScenarioSchema


class NewScenarioModel(BaseModel):
    num_players: int = Field(default=3, ge=2, le=9)
    seed: Optional[int] = Field(default=None, ge=0)


class SeatStatusModel(BaseModel):
    role_id: str
    claimed: bool
    is_me: bool
    is_active: bool


class LobbyViewModel(BaseModel):
    has_scenario: bool
    my_role: Optional[str] = None
    active_seats: List[int]
    seats: List[SeatStatusModel]


class DirectorViewModel(BaseModel):
    is_active: bool
    claimed_roles: Dict[str, Optional[str]]
    scenario: Optional[ScenarioSchema] = None
    connected_seats: List[int] = []


class DealerViewModel(BaseModel):
    has_scenario: bool
    board_state: Optional[BoardState] = None
    board: List[Optional[str]] = []  # None = still face down
    rule: Optional[CameraRuleSchema] = None


class HoleCardModel(BaseModel):
    face_up: bool
    card: Optional[str] = None


class PlayerViewModel(BaseModel):
    seat: int
    holds_seat: bool
    has_scenario: bool
    has_hand: bool
    board_state: Optional[BoardState] = None
    cards: List[HoleCardModel]


class PlayerActionModel(BaseModel):
    action: str
    card_index: Optional[int] = None
