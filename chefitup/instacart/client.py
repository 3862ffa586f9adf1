"""
Instacart Export Adapter.

Sends a shopping list to Instacart's products_link endpoint and returns the
cart URL. In mock mode a deterministic fake URL is built locally and no
request is made. Failures come back as InstacartError values; nothing is
raised past this module.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Union
from urllib.parse import quote

import requests

from ..config import DEFAULT_INSTACART_BASE_URL, Settings
from ..data.models import ShoppingListItem
from ..shopping.quantities import quantity_as_float

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "ChefItUp Shopping List"
LINK_TYPE = "shopping_list"
EXPIRES_IN_DAYS = 7
MOCK_CART_URL = "https://www.instacart.com/store/mock-cart"
DEFAULT_TIMEOUT = 30


@dataclass
class ExportResult:
    url: str
    mock: bool = False
    expires_at: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    ok = True

    def to_dict(self) -> Dict[str, Any]:
        return {"success": True, "url": self.url, "mock": self.mock, "expires_at": self.expires_at}


@dataclass
class InstacartError:
    message: str
    status: Optional[int] = None
    body: Optional[str] = None
    invalid_input: bool = False
    ok = False

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.message, "status": self.status}


@dataclass
class ConnectionStatus:
    success: bool
    message: str
    mock: bool = False
    status: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "message": self.message, "mock": self.mock, "status": self.status}


def display_text(item: ShoppingListItem) -> str:
    """'2 cups flour' style text; empty parts collapse to single spaces."""
    parts = [item.quantity or "1", item.unit or "", item.name]
    return " ".join(p.strip() for p in parts if p and p.strip())


class InstacartClient:
    """Client for the Instacart Connect products_link API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: str = DEFAULT_INSTACART_BASE_URL,
        mock_mode: bool = False,
        session: Optional[requests.Session] = None,
        timeout: float = DEFAULT_TIMEOUT,
        linkback_url: str = "",
        clock: Callable[[], float] = time.time,
    ):
        """
        Initialize the client.

        Args:
            api_key: Bearer token; without one the client always mocks
            base_url: Endpoint base, products_link is appended
            mock_mode: Force mock mode even with an API key
            session: requests.Session to use (tests inject a fake)
            timeout: Request timeout in seconds
            linkback_url: Partner URL shown on the Instacart landing page
            clock: Seconds-since-epoch source for mock expiry times
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.mock_mode = mock_mode
        self.session = session or requests.Session()
        self.timeout = timeout
        self.linkback_url = linkback_url
        self.clock = clock

    @classmethod
    def from_settings(cls, settings: Settings) -> "InstacartClient":
        return cls(
            api_key=settings.instacart_api_key,
            base_url=settings.instacart_base_url,
            mock_mode=settings.instacart_mock_mode,
        )

    @property
    def uses_mock(self) -> bool:
        return self.mock_mode or not self.api_key

    def set_mock_mode(self, enabled: bool):
        self.mock_mode = bool(enabled)
        logger.info(f"[INSTACART] Mock mode {'enabled' if self.mock_mode else 'disabled'}")

    @property
    def products_link_url(self) -> str:
        return f"{self.base_url}/products_link"

    def build_line_items(self, items: Sequence[ShoppingListItem]) -> List[Dict[str, Any]]:
        return [
            {
                "name": item.name,
                "quantity": quantity_as_float(item.quantity, default=1.0),
                "unit": item.unit or "",
                "display_text": display_text(item),
            }
            for item in items
        ]

    def build_payload(self, items: Sequence[ShoppingListItem], title: str = DEFAULT_TITLE) -> Dict[str, Any]:
        return {
            "title": title,
            "link_type": LINK_TYPE,
            "expires_in": EXPIRES_IN_DAYS,
            "line_items": self.build_line_items(items),
            "landing_page_configuration": {
                "partner_linkback_url": self.linkback_url,
                "enable_pantry_items": True,
            },
        }

    def mock_url(self, items: Sequence[ShoppingListItem], title: str) -> str:
        joined = ",".join(display_text(item) for item in items)
        return f"{MOCK_CART_URL}?title={quote(title, safe='')}&items={quote(joined, safe='')}"

    def _headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def _post(self, payload: Dict[str, Any]) -> Union[requests.Response, InstacartError]:
        try:
            return self.session.post(
                self.products_link_url,
                json=payload,
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"[INSTACART] Network error: {e}")
            return InstacartError(f"Network error: Unable to connect to Instacart API ({e})")

    def export_list(
        self,
        items: Sequence[ShoppingListItem],
        title: str = DEFAULT_TITLE,
    ) -> Union[ExportResult, InstacartError]:
        """
        Export items to an Instacart cart.

        Args:
            items: Shopping list items to send
            title: Cart title

        Returns:
            ExportResult with the cart URL, or InstacartError
        """
        if not items:
            return InstacartError("Shopping list is empty", invalid_input=True)

        if self.uses_mock:
            logger.info(f"[INSTACART] Mock export of {len(items)} items")
            expires_at = datetime.fromtimestamp(self.clock(), tz=timezone.utc) + timedelta(days=EXPIRES_IN_DAYS)
            return ExportResult(url=self.mock_url(items, title), mock=True, expires_at=expires_at.isoformat())

        logger.info(f"[INSTACART] Exporting {len(items)} items to Instacart")
        response = self._post(self.build_payload(items, title))
        if isinstance(response, InstacartError):
            return response

        if not response.ok:
            logger.error(f"[INSTACART] API error ({response.status_code})")
            logger.debug(f"[INSTACART] Response body: {response.text[:500]}")
            return InstacartError(
                f"Instacart API error ({response.status_code})",
                status=response.status_code,
                body=response.text,
            )

        try:
            data = response.json()
        except ValueError:
            return InstacartError("Instacart API returned a non-JSON body", status=response.status_code, body=response.text)

        url = data.get("url") if isinstance(data, dict) else None
        if not url:
            return InstacartError("Instacart API response has no url", status=response.status_code, body=response.text)

        logger.info("[INSTACART] Export succeeded")
        return ExportResult(url=url, mock=False, expires_at=data.get("expires_at"), data=data)

    def test_connection(self) -> ConnectionStatus:
        """Send a one-item list to check the API key and endpoint."""
        if self.uses_mock:
            return ConnectionStatus(True, "Successfully connected to Instacart API (Mock Mode)", mock=True)

        payload = {
            "title": "Test Connection",
            "link_type": LINK_TYPE,
            "expires_in": 1,
            "line_items": [{"name": "Test Item", "quantity": 1, "unit": ""}],
        }
        response = self._post(payload)
        if isinstance(response, InstacartError):
            return ConnectionStatus(False, response.message)

        if not response.ok:
            return ConnectionStatus(
                False,
                f"API returned error: {response.status_code} {response.reason}",
                status=response.status_code,
            )
        return ConnectionStatus(True, "Successfully connected to Instacart API", status=response.status_code)
