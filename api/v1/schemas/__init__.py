"""Re-export individual schema modules for easy imports."""

from .user import SignInRequest, SignInResponse, OnboardingRequest
from .activity import LogActivityRequest

__all__ = [
    "SignInRequest",
    "SignInResponse",
    "OnboardingRequest",
    "LogActivityRequest",
]
