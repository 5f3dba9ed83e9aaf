"""Deterministic Reasoner that never touches the network.

Used by the test suite and by ``main.py --stub`` for dry runs.
"""

from typing import Callable, Optional, Sequence

from core.models import GenerationParameters

from .base import Reasoner, ReasonerResult

Responder = Callable[[str, Optional[str]], str]


class StubReasoner(Reasoner):
    """Scripted Reasoner.

    Replies are taken, in order, from ``replies`` (cycling when exhausted),
    or computed by ``responder(instruction, system_prompt)``. With neither,
    a short deterministic echo of the instruction is returned.

    Attributes:
        calls: (instruction, system_prompt, parameters) for every invocation
    """

    def __init__(
        self,
        replies: Optional[Sequence[str]] = None,
        responder: Optional[Responder] = None,
        fail: bool = False,
        error: str = "Stub reasoner failure",
    ):
        self.replies = list(replies or [])
        self.responder = responder
        self.fail = fail
        self.error = error
        self.calls: list[tuple[str, Optional[str], Optional[GenerationParameters]]] = []

    async def execute(
        self,
        instruction: str,
        *,
        system_prompt: Optional[str] = None,
        parameters: Optional[GenerationParameters] = None,
    ) -> ReasonerResult:
        index = len(self.calls)
        self.calls.append((instruction, system_prompt, parameters))

        if self.fail:
            return ReasonerResult(success=False, error=self.error)
        if self.responder is not None:
            return ReasonerResult(content=self.responder(instruction, system_prompt))
        if self.replies:
            return ReasonerResult(content=self.replies[index % len(self.replies)])

        first_line = next(
            (line.strip() for line in instruction.splitlines() if line.strip()),
            "",
        )
        return ReasonerResult(content=f"Considered: {first_line[:120]}")
