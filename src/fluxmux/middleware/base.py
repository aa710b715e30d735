"""Middleware contract and chain used by bridge mode."""

from abc import ABC, abstractmethod
from typing import List, Optional

from fluxmux.common import get_logger
from fluxmux.core import Message


class Middleware(ABC):
    """A stateful stage that forwards at most one message per input.

    Returning None drops the input for the rest of the chain.
    """

    def __init__(self, name: str) -> None:
        self.name = name
        self.logger = get_logger(f"{__name__}.{name}")

    @abstractmethod
    async def handle(self, message: Message) -> Optional[Message]:
        pass

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(name='{self.name}')"

    def __repr__(self) -> str:
        return self.__str__()


class MiddlewareChain:
    """Ordered middleware stages applied to one message at a time."""

    def __init__(self, middlewares: Optional[List[Middleware]] = None) -> None:
        self.middlewares: List[Middleware] = list(middlewares or [])
        self.logger = get_logger(f"{__name__}.MiddlewareChain")

    def add(self, middleware: Middleware) -> "MiddlewareChain":
        """Append a stage to the end of the chain."""
        self.middlewares.append(middleware)
        return self

    def names(self) -> List[str]:
        """Stage names in execution order."""
        return [mw.name for mw in self.middlewares]

    async def process(self, message: Message) -> Optional[Message]:
        """Thread a message through every stage, stopping at the first drop."""
        return await self.process_from(0, message)

    async def process_from(self, index: int, message: Message) -> Optional[Message]:
        """Run the stages starting at ``index``.

        Used to push a message synthesized by stage ``index - 1`` through the
        remainder of the chain.
        """
        current = message
        for middleware in self.middlewares[index:]:
            result = await middleware.handle(current)
            if result is None:
                self.logger.debug(
                    f"Message held or dropped by {middleware.name}",
                    extra={"extra_fields": {"stage": middleware.name, "message_id": current.id}},
                )
                return None
            current = result
        return current

    def __len__(self) -> int:
        return len(self.middlewares)

    def __repr__(self) -> str:
        return f"MiddlewareChain(stages={self.names()})"
