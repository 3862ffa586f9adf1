"""
Exception types shared across ChefItUp.

External-call failures are converted to typed results at each adapter
boundary; these exceptions cover validation, lookups, auth and cancellation.
"""

from typing import Optional


class ChefItUpError(Exception):
    """Base class for all ChefItUp errors."""


class InvalidInputError(ChefItUpError, ValueError):
    """Required user input is missing or out of range."""


class ItemNotFoundError(ChefItUpError, KeyError):
    """A shopping list item id does not exist in the list."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Item not found"


class RecipeNotFoundError(ChefItUpError, KeyError):
    """A recipe id does not exist in the catalog."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Recipe not found"


class AuthError(ChefItUpError):
    """Sign-in failed, or an operation needs a signed-in user."""


class LLMProviderError(ChefItUpError):
    """The LLM provider call failed (auth, network, or bad response)."""


class HostedBackendError(ChefItUpError):
    """The hosted backend returned a non-2xx response or was unreachable."""

    def __init__(self, message: str, status: Optional[int] = None, body: Optional[str] = None):
        super().__init__(message)
        self.status = status
        self.body = body


class PreferencesSyncError(ChefItUpError):
    """Preferences could not be written to the hosted backend."""


class OperationCancelled(ChefItUpError):
    """The caller abandoned the operation before its result was delivered."""
