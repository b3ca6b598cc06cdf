from pydantic import BaseModel, Field, StrictFloat, StrictInt


class ScoreSubmission(BaseModel):
    # Plausibility (length, range, cap) is checked by the leaderboard service
    username: str
    score: StrictInt | StrictFloat
    difficulty: str = Field(..., max_length=15)
    is_daily_challenge: bool = False
    problem_seed: str | None = Field(None, max_length=50)


class ScoreSubmissionResponse(BaseModel):
    success: bool
    message: str
    total_score: int | None = None
    reason: str | None = None


class LeaderboardRow(BaseModel):
    username: str
    score: int
    games_played: int
