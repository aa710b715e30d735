"""Action contract and chain used by pipe mode."""

from abc import ABC, abstractmethod
from typing import List, Optional

from fluxmux.common import classify_error, get_logger
from fluxmux.core import Message


class PipeAction(ABC):
    """A stage that turns one message into zero or more messages.

    ``finalize`` is invoked once after the source is exhausted and may emit
    messages derived from everything the action held.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.logger = get_logger(f"{__name__}.{name}")

    @abstractmethod
    async def execute(self, message: Message) -> List[Message]:
        pass

    async def finalize(self) -> List[Message]:
        return []

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"

    def __repr__(self) -> str:
        return self.__str__()


class ActionChain:
    """Ordered actions with depth-first fan-out.

    Every output of action ``i`` is individually run through action
    ``i + 1``, so the chain's output for one input is the cross product of
    each stage's fan-out.
    """

    def __init__(self, actions: Optional[List[PipeAction]] = None) -> None:
        self.actions: List[PipeAction] = list(actions or [])
        self.logger = get_logger(f"{__name__}.ActionChain")

    def add(self, action: PipeAction) -> "ActionChain":
        self.actions.append(action)
        return self

    def names(self) -> List[str]:
        return [action.name for action in self.actions]

    async def run(self, message: Message) -> List[Message]:
        """Run one input message through the whole chain."""
        return await self._run_from(0, [message])

    async def _run_from(self, index: int, messages: List[Message]) -> List[Message]:
        current = messages
        for action in self.actions[index:]:
            produced: List[Message] = []
            for msg in current:
                try:
                    produced.extend(await action.execute(msg))
                except Exception as e:
                    self.logger.error(
                        f"Action failed, message dropped: {{'action': {action.name!r}, 'message_id': {msg.id!r}, 'error': {str(e)!r}}}",
                        extra={"extra_fields": {"stage": action.name, "error_category": classify_error(e)}},
                    )
            current = produced
            if not current:
                break
        return current

    async def finalize(self) -> List[Message]:
        """Finalize every action in chain order.

        Each action's finalize output is returned as is, in chain order; it
        does not pass through the actions after it.
        """
        results: List[Message] = []
        for action in self.actions:
            try:
                emitted = await action.finalize()
            except Exception as e:
                self.logger.error(
                    f"Action finalize failed: {{'action': {action.name!r}, 'error': {str(e)!r}}}",
                    extra={"extra_fields": {"stage": action.name, "error_category": classify_error(e)}},
                )
                continue
            results.extend(emitted)
        return results

    def __len__(self) -> int:
        return len(self.actions)

    def __repr__(self) -> str:
        return f"ActionChain(actions={self.names()})"
