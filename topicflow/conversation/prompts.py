"""
Prompt Topics

A prompt asks one question, validates every answer and re-asks until the
answer is accepted. It then ends with ``{"args": ..., "result": ...}`` so the
parent can read ``child.result``.
"""

from typing import Any, ClassVar, Dict, List, Optional, Type

from pydantic import BaseModel, Field

from .topic import Topic
from .validators import (
    Validator,
    ValidatorResult,
    has_choice,
    has_confirmation,
    has_number,
    has_text,
)


TOO_MANY_ATTEMPTS = "too_many_attempts"


class PromptArgs(BaseModel):
    """Start arguments for a prompt."""

    prompt: str
    reprompt: Optional[str] = None
    max_attempts: Optional[int] = Field(default=None, ge=1)


class ChoicePromptArgs(PromptArgs):
    choices: List[str] = Field(default_factory=list)
    synonyms: Dict[str, List[str]] = Field(default_factory=dict)


class Prompt(Topic):
    """Base prompt. Subclasses set ``validator`` or override ``get_validator``."""

    type_tag = "topicflow.Prompt"
    returns_result = True

    args_model: ClassVar[Type[PromptArgs]] = PromptArgs
    validator: ClassVar[Optional[Validator]] = None

    @property
    def args(self) -> PromptArgs:
        return self.args_model.model_validate(self.state["args"])

    @property
    def attempts(self) -> int:
        return self.state.get("attempts", 0)

    @property
    def result(self) -> Optional[ValidatorResult]:
        """The accepted value or failure reason, readable once ended."""
        if not self.ended or not self.return_value:
            return None
        return ValidatorResult.from_dict(self.return_value["result"])

    def get_validator(self) -> Validator:
        if self.validator is None:
            raise NotImplementedError(f"{type(self).__name__} has no validator")
        return self.validator

    async def on_start(self, args: Any) -> None:
        if isinstance(args, str):
            args = {"prompt": args}
        elif isinstance(args, BaseModel):
            args = args.model_dump()

        self.state["args"] = self.args_model.model_validate(args or {}).model_dump()
        self.state["attempts"] = 0

        await self.send(self.args.prompt)

    async def on_dispatch(self) -> None:
        if not self.activity.is_message:
            return

        result = await self.get_validator().validate(self.activity)
        if result.valid:
            await self.end({"args": self.state["args"], "result": result.to_dict()})
            return

        self.state["attempts"] = self.attempts + 1
        self.instance.touch()
        self._logger.debug("prompt_rejected", reason=result.reason, attempts=self.attempts)

        args = self.args
        if args.max_attempts is not None and self.attempts >= args.max_attempts:
            await self.end({
                "args": self.state["args"],
                "result": ValidatorResult(reason=TOO_MANY_ATTEMPTS).to_dict(),
            })
            return

        await self.send(args.reprompt or args.prompt)


class TextPrompt(Prompt):
    type_tag = "topicflow.TextPrompt"
    validator = has_text


class NumberPrompt(Prompt):
    type_tag = "topicflow.NumberPrompt"
    validator = has_number


class ConfirmPrompt(Prompt):
    type_tag = "topicflow.ConfirmPrompt"
    validator = has_confirmation


class ChoicePrompt(Prompt):
    """Accepts one of ``choices`` from the start arguments."""

    type_tag = "topicflow.ChoicePrompt"
    args_model = ChoicePromptArgs

    def get_validator(self) -> Validator:
        args = self.args
        return has_choice(args.choices, args.synonyms)


__all__ = [
    "TOO_MANY_ATTEMPTS",
    "PromptArgs",
    "ChoicePromptArgs",
    "Prompt",
    "TextPrompt",
    "NumberPrompt",
    "ConfirmPrompt",
    "ChoicePrompt",
]
