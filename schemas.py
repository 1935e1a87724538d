from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, StrictFloat, StrictInt, StrictStr

Number = Union[StrictInt, StrictFloat]


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# -------------------
# Signer
# -------------------
class SignScoreRequest(CamelModel):
    game_id: Optional[StrictStr] = Field(None, alias="gameId")
    score: Optional[Number] = None
    player: Optional[StrictStr] = None


class SignScoreResponse(CamelModel):
    signature: str
    validator_address: str = Field(..., serialization_alias="validatorAddress")


# -------------------
# Verifier
# -------------------
class RoundDetail(CamelModel):
    photo_id: Optional[int] = Field(None, alias="photoId")
    year_guess: Optional[int] = Field(None, alias="yearGuess")
    year_true: Optional[int] = Field(None, alias="yearTrue")
    delta: Optional[int] = None
    score: Optional[int] = None


class FarcasterProfile(CamelModel):
    fid: Optional[int] = None
    username: Optional[str] = None
    display_name: Optional[str] = Field(None, alias="displayName")
    pfp_url: Optional[str] = Field(None, alias="pfpUrl")


class ScoreSubmission(CamelModel):
    game_id: Optional[StrictStr] = Field(None, alias="gameId")
    score: Optional[Number] = None
    tx_hash: Optional[StrictStr] = Field(None, alias="txHash")
    wallet: Optional[StrictStr] = None
    rounds: Optional[List[RoundDetail]] = None
    farcaster: Optional[FarcasterProfile] = None


class OkResponse(BaseModel):
    ok: bool = True


# -------------------
# Read side
# -------------------
class PhotoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    image_url: str
    title: Optional[str] = None
    year_true: int
    year_min: Optional[int] = None
    year_max: Optional[int] = None
