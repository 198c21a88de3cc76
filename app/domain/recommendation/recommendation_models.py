"""Recommendation domain models."""

from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field


class UserPreferences(BaseModel):
    genres: list[str] = Field(default_factory=list)
    creators: list[int] = Field(default_factory=list, description="Followed creator ids")
    audio_quality: str | None = None


class VideoItem(BaseModel):
    kind: Literal["video"] = "video"
    id: int
    user_id: int | None = None
    title: str | None = None
    video_url: str | None = None
    genres: list[str] = Field(default_factory=list)
    likes: int | None = 0
    comments: int | None = 0


class RadioStationItem(BaseModel):
    kind: Literal["radio"] = "radio"
    id: int
    user_id: int | None = None
    name: str | None = None
    genres: list[str] = Field(default_factory=list)


RecommendableItem = Annotated[Union[VideoItem, RadioStationItem], Field(discriminator="kind")]


class RecommendationScore(BaseModel):
    score: float
    reasons: list[str] = Field(default_factory=list)


class ScoredItem(BaseModel):
    item: RecommendableItem
    score: float
    reasons: list[str]
