"""
FastAPI application for ChefItUp.

Serves the recipe catalog, meal plans, shopping lists, AI search/generation,
sign-in with user preferences, and Instacart export. The
MealPlanningAssistant is built once at startup and handed to routes through
app.state.
"""
import logging
import os
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..errors import (
    AuthError,
    InvalidInputError,
    ItemNotFoundError,
    PreferencesSyncError,
    RecipeNotFoundError,
)
from ..main import MealPlanningAssistant

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if os.getenv("DEBUG", "false").lower() == "true" else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the assistant from the environment unless one was injected."""
    logger.info("Starting ChefItUp API...")
    if getattr(app.state, "assistant", None) is None:
        app.state.assistant = MealPlanningAssistant.from_settings()
    yield
    logger.info("ChefItUp API shutdown complete")


def _error_response(status_code: int, exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


def create_app(assistant: Optional[MealPlanningAssistant] = None) -> FastAPI:
    """
    Create the FastAPI app.

    Args:
        assistant: Pre-built assistant (tests); built from settings at startup otherwise

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="ChefItUp API",
        description="Diabetes-friendly meal planning with AI recipe search",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.assistant = assistant

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(InvalidInputError)
    async def invalid_input_handler(request: Request, exc: InvalidInputError):
        return _error_response(400, exc)

    @app.exception_handler(RecipeNotFoundError)
    async def recipe_not_found_handler(request: Request, exc: RecipeNotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(ItemNotFoundError)
    async def item_not_found_handler(request: Request, exc: ItemNotFoundError):
        return _error_response(404, exc)

    @app.exception_handler(AuthError)
    async def auth_error_handler(request: Request, exc: AuthError):
        return _error_response(401, exc)

    @app.exception_handler(PreferencesSyncError)
    async def preferences_sync_handler(request: Request, exc: PreferencesSyncError):
        return _error_response(502, exc)

    @app.get("/health")
    async def health_check(request: Request):
        """Health check endpoint for load balancers and container orchestration."""
        assistant = request.app.state.assistant
        return {
            "status": "healthy",
            "recipes": len(assistant.recipe_store),
            "ai_enabled": assistant.search.ai_enabled,
            "instacart_mock": assistant.instacart.uses_mock,
        }

    from .routes import auth, instacart, plan, recipes, shop

    app.include_router(recipes.router, prefix="/api", tags=["recipes"])
    app.include_router(plan.router, prefix="/api", tags=["planning"])
    app.include_router(shop.router, prefix="/api", tags=["shopping"])
    app.include_router(instacart.router, prefix="/api", tags=["instacart"])
    app.include_router(auth.router, prefix="/api", tags=["auth"])

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 5000))
    uvicorn.run(
        "chefitup.api.main:app",
        host="0.0.0.0",
        port=port,
        log_level="debug" if os.getenv("DEBUG", "false").lower() == "true" else "info",
    )
