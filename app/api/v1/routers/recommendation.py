from fastapi import APIRouter

from app.api.v1.schemas.base import ApiOut
from app.api.v1.schemas.recommendation import RankIn, RankOut
from app.domain.recommendation.recommendation_domain import recommendation_engine

router = APIRouter(prefix="/recommendations", tags=["Recommendations"])


@router.post("/rank")
async def rank_items(params: RankIn) -> ApiOut[RankOut]:
    """Score videos and radio stations against a user's preferences, best first."""
    ranked = recommendation_engine.sort_by_recommendation_score(params.items, params.preferences)
    return ApiOut[RankOut](results=RankOut(items=ranked))
