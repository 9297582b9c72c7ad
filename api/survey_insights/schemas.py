import json
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class SubmissionAnswer(BaseModel):
    questionId: int
    value: Any = None
    numericValue: float | None = None
    confidenceScore: int | None = None

    def is_answered(self) -> bool:
        if self.numericValue is not None:
            return True
        if isinstance(self.value, str):
            return bool(self.value.strip())
        return self.value not in (None, [], {})

    def stored_value(self) -> str | None:
        if self.value is None or isinstance(self.value, str):
            return self.value
        return json.dumps(self.value, ensure_ascii=False)


class SubmissionRequest(BaseModel):
    surveyId: int = Field(gt=0)
    answers: list[SubmissionAnswer]
    completedAt: datetime | None = None
    responseTime: int = 0
    sessionId: str | None = None
    startedAt: datetime | None = None


class SubmissionResponse(BaseModel):
    success: bool
    responseId: int
    message: str


class LoginRequest(BaseModel):
    username: str
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    role: str
    expires_in: int
