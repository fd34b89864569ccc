"""FastAPI application and routes."""
from .main import app
from .schemas import (
    ApplicationResponse,
    CreateApplicationRequest,
    EnvironmentResponse,
    SubmitApplicationRequest,
    ValidationResultResponse,
)

__all__ = [
    "app",
    "ApplicationResponse",
    "CreateApplicationRequest",
    "EnvironmentResponse",
    "SubmitApplicationRequest",
    "ValidationResultResponse",
]
