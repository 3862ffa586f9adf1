"""
Tagged results for LLM-backed operations.

Every LLM call resolves to exactly one of:
- Ok: a validated value
- ParseError: the provider answered but the output was not the expected JSON
- ProviderError: the provider could not be called or failed
"""

from dataclasses import dataclass
from typing import ClassVar, Generic, TypeVar, Union

T = TypeVar("T")


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok: ClassVar[bool] = True


@dataclass(frozen=True)
class ParseError:
    message: str
    raw: str = ""
    ok: ClassVar[bool] = False


@dataclass(frozen=True)
class ProviderError:
    message: str
    missing_credential: bool = False
    ok: ClassVar[bool] = False


LLMResult = Union[Ok, ParseError, ProviderError]
