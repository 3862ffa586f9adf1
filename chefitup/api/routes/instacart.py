"""
Instacart settings routes for the FastAPI application.

Provides endpoints for:
- Testing the API connection
- Toggling mock mode at runtime
- Sending a sample list
"""
import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ...data.models import ShoppingListItem
from ...main import MealPlanningAssistant
from ..dependencies import get_assistant, run_blocking

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/instacart")

SAMPLE_ITEMS = [
    ShoppingListItem(id="sample-1", name="Bananas", quantity="6", unit="", category="Produce"),
    ShoppingListItem(id="sample-2", name="Greek yogurt", quantity="2", unit="cups", category="Dairy"),
]


class ToggleMockModeRequest(BaseModel):
    """Request body for toggling mock mode."""
    enabled: bool


@router.get("/test-connection")
async def test_connection(assistant: MealPlanningAssistant = Depends(get_assistant)):
    """Send a one-item payload and report whether Instacart accepted it."""
    status = await run_blocking(assistant.instacart.test_connection)
    logger.info(f"[INSTACART] Connection test: success={status.success}, mock={status.mock}")
    return status.to_dict()


@router.post("/toggle-mock-mode")
async def toggle_mock_mode(
    toggle_request: ToggleMockModeRequest,
    assistant: MealPlanningAssistant = Depends(get_assistant),
):
    """Switch mock mode for this process."""
    assistant.instacart.set_mock_mode(toggle_request.enabled)
    return {
        "success": True,
        "mock_mode_enabled": assistant.instacart.mock_mode,
        "uses_mock": assistant.instacart.uses_mock,
        "message": "Mock mode enabled" if toggle_request.enabled else "Mock mode disabled",
    }


@router.post("/test")
async def send_test_list(assistant: MealPlanningAssistant = Depends(get_assistant)):
    """Report the Instacart configuration and export a two-item sample list."""
    client = assistant.instacart
    result = await run_blocking(client.export_list, SAMPLE_ITEMS, "ChefItUp Test List")
    return {
        "api_key_configured": bool(client.api_key),
        "mock_mode_enabled": client.mock_mode,
        "server_time": datetime.now(timezone.utc).isoformat(),
        "export": result.to_dict(),
    }
