from pydantic import BaseModel, Field, field_validator


class ProblemRequest(BaseModel):
    prompt: str = Field(..., min_length=1, max_length=8000)
    topic: str | None = Field(None, max_length=100)
    difficulty: str | None = Field(None, max_length=15)
    is_daily_challenge: bool = False
    problem_seed: str | None = Field(None, max_length=50)

    @field_validator("prompt")
    @classmethod
    def prompt_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Prompt is required")
        return v

    @field_validator("topic", "difficulty", "problem_seed")
    @classmethod
    def blank_to_none(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()


class ProblemResponse(BaseModel):
    text: str
    source: str


class QuotaDeniedResponse(BaseModel):
    error: str
    reason: str
    message: str
