"""Pydantic schemas for request/response models.

All schemas are re-exported here for convenient imports.
"""

from insights.schemas.policy import AuthorizeOut, AuthorizeRequest
from insights.schemas.profile import MeOut, ProfileOut, ProfileRoleValue, UpdateProfileRequest
from insights.schemas.recovery import (
    SecurityAnswerOut,
    SecurityAnswerRequest,
    SecurityQuestionOut,
    SecurityQuestionRequest,
    SetSecurityQuestionRequest,
)

__all__ = [
    "AuthorizeOut",
    "AuthorizeRequest",
    "MeOut",
    "ProfileOut",
    "ProfileRoleValue",
    "SecurityAnswerOut",
    "SecurityAnswerRequest",
    "SecurityQuestionOut",
    "SecurityQuestionRequest",
    "SetSecurityQuestionRequest",
    "UpdateProfileRequest",
]
