"""
Action and Receipt models — the tool invocation contract.

An Action names one external program run (pkgadd, a pre-install
script, signify...). A Receipt is its outcome. Adapters take Actions
and return Receipts; they never raise.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field


class Action(BaseModel):
    """One requested program run.

    ``program`` and ``args`` form the argument vector; nothing is
    interpolated through a shell.
    """

    id: str                         # step identifier, e.g. "pkgadd", "pre-install"
    program: str
    args: list[str] = Field(default_factory=list)
    cwd: str | None = None
    stream: bool = True             # echo output lines as they arrive
    capture: bool = True            # keep output in the receipt

    @property
    def argv(self) -> list[str]:
        return [self.program, *self.args]


class Receipt(BaseModel):
    """Result of an adapter execution.

    Receipts capture the full outcome of an action. The adapter
    NEVER raises exceptions — failures are captured here.
    """

    adapter: str
    action_id: str
    status: Literal["ok", "failed"] = "ok"

    duration_ms: int = 0

    output: str = ""
    error: str | None = None

    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        """Whether the action succeeded."""
        return self.status == "ok"

    @property
    def failed(self) -> bool:
        """Whether the action failed."""
        return self.status == "failed"

    @property
    def return_code(self) -> int | None:
        return self.metadata.get("return_code")

    @classmethod
    def success(
        cls,
        adapter: str,
        action_id: str,
        output: str = "",
        **kwargs: Any,
    ) -> Receipt:
        """Create a success receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="ok",
            output=output,
            **kwargs,
        )

    @classmethod
    def failure(
        cls,
        adapter: str,
        action_id: str,
        error: str,
        **kwargs: Any,
    ) -> Receipt:
        """Create a failure receipt."""
        return cls(
            adapter=adapter,
            action_id=action_id,
            status="failed",
            error=error,
            **kwargs,
        )
