"""Security-question recovery schemas."""

from uuid import UUID

from pydantic import BaseModel, Field

__all__ = [
    "SecurityAnswerOut",
    "SecurityAnswerRequest",
    "SecurityQuestionOut",
    "SecurityQuestionRequest",
    "SetSecurityQuestionRequest",
]


class SecurityQuestionRequest(BaseModel):
    email: str = Field(..., min_length=1, max_length=320)


class SecurityQuestionOut(BaseModel):
    """Both fields are null when the account is unknown or has no question."""

    user_id: UUID | None
    question: str | None


class SecurityAnswerRequest(BaseModel):
    user_id: UUID
    answer: str = Field(..., min_length=1, max_length=200)


class SecurityAnswerOut(BaseModel):
    valid: bool


class SetSecurityQuestionRequest(BaseModel):
    question: str = Field(..., min_length=1, max_length=500)
    answer: str = Field(..., min_length=1, max_length=200)
