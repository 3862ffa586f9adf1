"""Shared FastAPI dependencies and result-to-HTTP helpers."""

import asyncio
from functools import partial
from typing import Optional

from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from ..ai.results import ParseError, ProviderError
from ..errors import AuthError
from ..main import MealPlanningAssistant
from ..session.bridge import SessionBridge

bearer_scheme = HTTPBearer(auto_error=False)


def get_assistant(request: Request) -> MealPlanningAssistant:
    """Dependency to get the assistant built at startup."""
    return request.app.state.assistant


async def run_blocking(func, *args, **kwargs):
    """Run a blocking (network-bound) call in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


async def get_session(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    assistant: MealPlanningAssistant = Depends(get_assistant),
) -> SessionBridge:
    """Session for the request's bearer token; AuthError (401) without a valid one."""
    if credentials is None:
        raise AuthError("Sign in required")
    return await run_blocking(assistant.open_session, credentials.credentials)


def llm_error_to_http(result) -> HTTPException:
    """503 when no LLM credential is configured, 502 for any other LLM failure."""
    if isinstance(result, ProviderError) and result.missing_credential:
        return HTTPException(status_code=503, detail=result.message)
    if isinstance(result, ParseError):
        return HTTPException(status_code=502, detail=f"Invalid response from LLM: {result.message}")
    return HTTPException(status_code=502, detail=result.message)
