"""Form topic that fills a flat schema one prompt at a time."""

from typing import Any, Dict, Optional, Type

from ..errors import UnsupportedVariantError
from .prompts import NumberPrompt, Prompt, TextPrompt
from .topic import Topic


FIELD_PROMPTS: Dict[str, Type[Prompt]] = {
    "string": TextPrompt,
    "number": NumberPrompt,
}


class SimpleForm(Topic):
    """
    Collects every field of ``schema`` and ends with ``{"form": {...}}``.

    Start arguments::

        {"schema": {"name": {"type": "string", "prompt": "Name?"}}}
    """

    type_tag = "topicflow.SimpleForm"

    @property
    def schema(self) -> Dict[str, Dict[str, Any]]:
        return self.state["schema"]

    @property
    def form(self) -> Dict[str, Any]:
        return self.state["form"]

    @property
    def current_field(self) -> Optional[str]:
        return self.state.get("field")

    async def on_start(self, args: Any) -> None:
        self.state["schema"] = dict((args or {}).get("schema", {}))
        self.state["form"] = {}
        await self._ask_next()

    async def on_dispatch(self) -> None:
        await self.dispatch_to_child(required=True)

    async def on_field_collected(self, child: Topic) -> None:
        name = self.state.pop("field")
        result = child.result if child.returns_result else None
        if result is not None and result.valid:
            self.form[name] = result.value
        await self._ask_next()

    def _prompt_class(self, name: str, metadata: Dict[str, Any]) -> Type[Prompt]:
        field_type = metadata.get("type")
        prompt_cls = FIELD_PROMPTS.get(field_type)
        if prompt_cls is None:
            raise UnsupportedVariantError(
                f'Field "{name}" has unsupported type "{field_type}"',
                variant=field_type,
            )
        return prompt_cls

    async def _ask_next(self) -> None:
        for name, metadata in self.schema.items():
            if name in self.form:
                continue

            prompt_cls = self._prompt_class(name, metadata)
            self.state["field"] = name
            self.instance.touch()
            await self.start_child(
                prompt_cls,
                {"prompt": metadata.get("prompt", name)},
                on_end=self.on_field_collected,
            )
            return

        await self.end({"form": dict(self.form)})


__all__ = ["SimpleForm", "FIELD_PROMPTS"]
