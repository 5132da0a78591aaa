"""
Input Validators

A validator inspects the inbound activity and returns a ``ValidatorResult``
holding either the parsed value or a rejection reason. Rejection is a normal
result, never an exception.
"""

import inspect
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Union

from .base import Activity


@dataclass
class ValidatorResult:
    """Outcome of validating one input."""

    value: Any = None
    reason: Optional[str] = None

    @property
    def valid(self) -> bool:
        return self.reason is None

    def to_dict(self) -> Dict[str, Any]:
        if self.valid:
            return {"value": self.value}
        return {"reason": self.reason}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValidatorResult":
        return cls(value=data.get("value"), reason=data.get("reason"))


CheckResult = Union[ValidatorResult, Awaitable[ValidatorResult]]
Check = Callable[[Activity], CheckResult]
Predicate = Callable[[Activity, Any], Union[bool, str, Awaitable[Union[bool, str]]]]


async def _resolve(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Validator:
    """Wraps a check function; checks may be sync or async."""

    def __init__(self, check: Check, name: Optional[str] = None):
        self._check = check
        self.name = name or getattr(check, "__name__", "validator")

    def __repr__(self) -> str:
        return f"<Validator {self.name}>"

    async def validate(self, activity: Activity) -> ValidatorResult:
        return await _resolve(self._check(activity))

    def and_(self, predicate: Predicate, reason: str = "rejected") -> "Validator":
        """
        Refine a successful result.

        ``predicate(activity, value)`` returns True to accept, a reason string
        to reject, or False to reject with ``reason``.
        """
        async def check(activity: Activity) -> ValidatorResult:
            result = await self.validate(activity)
            if not result.valid:
                return result

            verdict = await _resolve(predicate(activity, result.value))
            if verdict is True:
                return result
            if isinstance(verdict, str):
                return ValidatorResult(reason=verdict)
            return ValidatorResult(reason=reason)

        return Validator(check, name=f"{self.name}&{getattr(predicate, '__name__', 'predicate')}")

    def __and__(self, predicate: Predicate) -> "Validator":
        return self.and_(predicate)


# =============================================================================
# Built-in validators
# =============================================================================

NUMBER_PATTERN = re.compile(r"-?\d+(?:\.\d+)?")

CONFIRM_WORDS = {"yes", "y", "yeah", "yep", "sure", "ok", "okay", "true", "1"}
DENY_WORDS = {"no", "n", "nope", "nah", "false", "0"}


def _text(activity: Activity) -> str:
    if not activity.is_message:
        return ""
    return (activity.text or "").strip()


def _has_text(activity: Activity) -> ValidatorResult:
    text = _text(activity)
    if not text:
        return ValidatorResult(reason="not_text")
    return ValidatorResult(value=text)


def _has_number(activity: Activity) -> ValidatorResult:
    match = NUMBER_PATTERN.search(_text(activity))
    if not match:
        return ValidatorResult(reason="not_number")

    number = float(match.group())
    if number.is_integer():
        return ValidatorResult(value=int(number))
    return ValidatorResult(value=number)


def _has_confirmation(activity: Activity) -> ValidatorResult:
    text = _text(activity).lower().rstrip(".!")
    if text in CONFIRM_WORDS:
        return ValidatorResult(value=True)
    if text in DENY_WORDS:
        return ValidatorResult(value=False)
    return ValidatorResult(reason="not_confirmation")


has_text = Validator(_has_text, name="has_text")
has_number = Validator(_has_number, name="has_number")
has_confirmation = Validator(_has_confirmation, name="has_confirmation")


def has_choice(
    choices: Iterable[str],
    synonyms: Optional[Dict[str, List[str]]] = None,
) -> Validator:
    """Match the text against ``choices`` (and their synonyms), ignoring case."""
    lookup: Dict[str, str] = {}
    for choice in choices:
        lookup[choice.lower()] = choice
        for synonym in (synonyms or {}).get(choice, []):
            lookup[synonym.lower()] = choice

    def check(activity: Activity) -> ValidatorResult:
        choice = lookup.get(_text(activity).lower())
        if choice is None:
            return ValidatorResult(reason="not_a_choice")
        return ValidatorResult(value=choice)

    return Validator(check, name="has_choice")


__all__ = [
    "ValidatorResult",
    "Validator",
    "has_text",
    "has_number",
    "has_choice",
    "has_confirmation",
]
