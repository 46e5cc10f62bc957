from pydantic import BaseModel, Field
from typing import List, Optional

from kitten_server.domain.card_rules import CardKind, Outcome


class UserModel(BaseModel):
    username: str = Field(min_length=1)


class LeaderboardEntryModel(BaseModel):
    username: str
    wins: int = 0
    losses: int = 0


class GameStartModel(BaseModel):
    resumed: bool
    deck: List[CardKind]


class DrawResultModel(BaseModel):
    outcome: Outcome
    card: Optional[CardKind] = None
    glyph: Optional[str] = None
    message: str
    defuse_charges: int = 0


class StartGameResponseModel(BaseModel):
    message: str
    username: str
    resumed: bool
    deck: List[CardKind]


class DrawCardResponseModel(DrawResultModel):
    username: str


class LeaderboardResponseModel(BaseModel):
    leaderboard: List[LeaderboardEntryModel]
