"""
Waterfall Topic

Runs an ordered list of async steps as a resumable program. The position in
the list is persisted as ``state["step_index"]``, so a step list must keep the
same order for the lifetime of an instance.
"""

from typing import Any, Awaitable, Callable, List, Optional

from .topic import Topic
from .validators import ValidatorResult


Step = Callable[[Any], Awaitable[Any]]
NextStep = Callable[..., None]

_NO_RESULT = object()


class Waterfall(Topic):
    """
    Topic whose behaviour is a list of steps.

    A step receives the value handed on by the previous one. It either calls
    ``next_step(value)`` to continue straight away, starts a child (the
    waterfall resumes with the child's result once it ends) or does neither
    and waits for the next turn.

    Example::

        class SetAlarm(Waterfall):
            type_tag = "alarm.set"

            def waterfall(self, next_step):
                return [self.ask_name, self.ask_when]
    """

    type_tag = "topicflow.Waterfall"

    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.result: Optional[ValidatorResult] = None
        self.trailing_value: Any = None
        self._child_result: Any = _NO_RESULT

    @property
    def step_index(self) -> int:
        return self.state.get("step_index", 0)

    @property
    def start_args(self) -> Any:
        return self.state.get("start_args")

    def waterfall(self, next_step: NextStep) -> List[Step]:
        """Return the steps of this waterfall."""
        return []

    async def run_waterfall(self, get_steps: Callable[[NextStep], List[Step]]) -> bool:
        """
        Advance through as many steps as this turn allows.

        Returns True once every step has run and no child is pending, or
        when the topic ended inside a step.
        """
        self.state.setdefault("step_index", 0)

        flow = {"next": True, "value": None}

        def next_step(value: Any = None) -> None:
            flow["next"] = True
            flow["value"] = value

        steps = get_steps(next_step)

        if self.has_started_children:
            flow["next"] = False
            self._child_result = _NO_RESULT

            await self.dispatch_to_child()
            if self.ended:
                return True

            if self._child_result is not _NO_RESULT:
                flow["next"] = True
                flow["value"] = self._child_result

        while flow["next"] and self.state["step_index"] < len(steps):
            flow["next"] = False
            self._child_result = _NO_RESULT

            value = flow["value"]
            flow["value"] = None

            step = steps[self.state["step_index"]]
            self.state["step_index"] += 1
            self.instance.touch()

            self._logger.debug("waterfall_step", step_index=self.state["step_index"] - 1)
            await step(value)

            if self.ended:
                return True

            if self.has_started_children:
                flow["next"] = False
            elif self._child_result is not _NO_RESULT:
                # The child ended inside the step
                flow["next"] = True
                flow["value"] = self._child_result

        if self.has_started_children:
            return False

        self.trailing_value = flow["value"] if flow["next"] else None
        return self.state["step_index"] >= len(steps)

    async def on_start(self, args: Any) -> None:
        self.state["start_args"] = args
        await self.on_dispatch()

    async def on_dispatch(self) -> None:
        if await self.run_waterfall(self.waterfall) and not self.ended:
            await self.on_waterfall_complete(self.trailing_value)

    async def on_child_end(self, child: Topic) -> None:
        if child.returns_result:
            self.result = child.result
            self._child_result = self.result.value if self.result else None

    async def on_waterfall_complete(self, value: Any) -> None:
        """Called when the last step has run without ending the topic."""
        await self.end(value)


__all__ = ["Waterfall", "Step", "NextStep"]
