"""
Pydantic request and response models of the HTTP API.

``QuestionPublic`` is the only shape in which questions leave the server;
it has no answer field.
"""

from .questions import QuestionPublic, QuestionAdmin
from .auth import Token, UserResponse

__all__ = [
    "QuestionPublic",
    "QuestionAdmin",
    "Token",
    "UserResponse",
]
