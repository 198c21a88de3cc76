from pydantic import BaseModel, Field

from app.domain.recommendation.recommendation_models import (
    RecommendableItem,
    ScoredItem,
    UserPreferences,
)


class RankIn(BaseModel):
    preferences: UserPreferences = Field(default_factory=UserPreferences)
    items: list[RecommendableItem] = Field(
        default_factory=list, max_length=500, description="Videos (kind=video) and radio stations (kind=radio)"
    )


class RankOut(BaseModel):
    items: list[ScoredItem]
