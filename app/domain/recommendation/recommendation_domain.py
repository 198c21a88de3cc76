"""Weighted recommendation scoring.

Videos:   0.4 * genre match + 0.4 * followed creator + 0.2 * engagement
Stations: 0.6 * genre match + 0.4 * followed creator

Genre match is the share of the item's genres the user prefers. Engagement is
(likes + comments) / 1000, capped at 1.
"""

from collections.abc import Iterable

from .recommendation_models import (
    RadioStationItem,
    RecommendableItem,
    RecommendationScore,
    ScoredItem,
    UserPreferences,
    VideoItem,
)

VIDEO_GENRE_WEIGHT = 0.4
VIDEO_CREATOR_WEIGHT = 0.4
VIDEO_ENGAGEMENT_WEIGHT = 0.2
STATION_GENRE_WEIGHT = 0.6
STATION_CREATOR_WEIGHT = 0.4

ENGAGEMENT_SATURATION = 1000
POPULAR_THRESHOLD = 0.5


def _percent(ratio: float) -> int:
    # Half-up rounding for the user-facing percentage
    return int(ratio * 100 + 0.5)


class RecommendationEngine:
    def calculate_genre_match(self, item_genres: list[str], user_genres: list[str]) -> float:
        preferred = set(user_genres)
        matching = [genre for genre in item_genres if genre in preferred]
        return len(matching) / max(len(item_genres), 1)

    def calculate_creator_match(self, creator_id: int | None, followed_creators: list[int]) -> float:
        return 1.0 if creator_id and creator_id in followed_creators else 0.0

    def score_video(self, video: VideoItem, preferences: UserPreferences) -> RecommendationScore:
        reasons: list[str] = []
        score = 0.0

        genre_score = self.calculate_genre_match(video.genres, preferences.genres)
        if genre_score > 0:
            score += VIDEO_GENRE_WEIGHT * genre_score
            reasons.append(f"Matches {_percent(genre_score)}% of your preferred genres")

        if self.calculate_creator_match(video.user_id, preferences.creators) > 0:
            score += VIDEO_CREATOR_WEIGHT
            reasons.append("From a creator you follow")

        engagement = (video.likes or 0) + (video.comments or 0)
        engagement_score = min(1.0, engagement / ENGAGEMENT_SATURATION)
        score += VIDEO_ENGAGEMENT_WEIGHT * engagement_score
        if engagement_score > POPULAR_THRESHOLD:
            reasons.append("Popular with other listeners")

        return RecommendationScore(score=score, reasons=reasons)

    def score_radio_station(
        self, station: RadioStationItem, preferences: UserPreferences
    ) -> RecommendationScore:
        reasons: list[str] = []
        score = 0.0

        genre_score = self.calculate_genre_match(station.genres, preferences.genres)
        if genre_score > 0:
            score += STATION_GENRE_WEIGHT * genre_score
            reasons.append(f"Matches {_percent(genre_score)}% of your preferred genres")

        if self.calculate_creator_match(station.user_id, preferences.creators) > 0:
            score += STATION_CREATOR_WEIGHT
            reasons.append("From a creator you follow")

        return RecommendationScore(score=score, reasons=reasons)

    def score(self, item: RecommendableItem, preferences: UserPreferences) -> RecommendationScore:
        if isinstance(item, VideoItem):
            return self.score_video(item, preferences)
        return self.score_radio_station(item, preferences)

    def sort_by_recommendation_score(
        self, items: Iterable[RecommendableItem], preferences: UserPreferences
    ) -> list[ScoredItem]:
        """Score every item and order them best first. Ties keep their input order."""
        scored = []
        for item in items:
            result = self.score(item, preferences)
            scored.append(ScoredItem(item=item, score=result.score, reasons=result.reasons))

        return sorted(scored, key=lambda s: s.score, reverse=True)


recommendation_engine = RecommendationEngine()
