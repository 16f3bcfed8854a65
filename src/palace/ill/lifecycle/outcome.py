from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from enum import Enum, StrEnum, auto
from typing import Any


class Phase(Enum):
    """Where a two-phase action is at.

    The first call of an action returns a form for staff to fill in
    (AWAITING_INPUT), the second call does the work (COMMITTING).
    """

    AWAITING_INPUT = auto()
    COMMITTING = auto()


class NextView(StrEnum):
    """Where staff end up after an action is committed."""

    illview = "illview"
    illlist = "illlist"


class Stage(StrEnum):
    commit = "commit"
    form = "form"
    error = "error"
    # Shown after create, there is nothing to fill in.
    msg = "msg"
    response = "response"
    status = "status"


@dataclasses.dataclass(frozen=True, kw_only=True)
class Outcome:
    """The result of a lifecycle action."""

    method: str
    stage: str
    error: bool = False
    status: str = ""
    message: str = ""
    next: NextView | None = NextView.illview
    value: Mapping[str, Any] = dataclasses.field(default_factory=dict)
    # Additional top level fields, used by forms.
    extra: Mapping[str, Any] = dataclasses.field(default_factory=dict)

    @classmethod
    def failure(
        cls,
        method: str,
        status: str,
        message: str = "",
        *,
        stage: str = Stage.commit,
        next: NextView | None = NextView.illview,
        value: Mapping[str, Any] | None = None,
    ) -> Outcome:
        return cls(
            method=method,
            stage=stage,
            error=True,
            status=status,
            message=message,
            next=next,
            value=value or {},
        )

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": int(self.error),
            "status": self.status,
            "message": self.message,
            "method": self.method,
            "stage": str(self.stage),
            "value": dict(self.value),
        }
        if self.next is not None:
            result["next"] = str(self.next)
        result.update(self.extra)
        return result
