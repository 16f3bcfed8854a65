"""Parameters of the lifecycle actions.

Staff submit forms whose fields arrive as a flat bag with a ``stage``
label. Each action phase gets its own model here, and `parse_params`
picks the model from the stage label.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, ClassVar, TypeAlias

from frozendict import frozendict
from pydantic import BaseModel, ConfigDict, Field

from palace.ill.core.exceptions import IllValueError
from palace.ill.libris.constants import BACKEND_NAME
from palace.ill.lifecycle.outcome import Phase
from palace.ill.status.graph import Direction


class ActionParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore", str_strip_whitespace=True)

    phase: ClassVar[Phase]


class AwaitingInput(ActionParams):
    phase = Phase.AWAITING_INPUT


class Committing(ActionParams):
    phase = Phase.COMMITTING


class CreateForm(AwaitingInput): ...


class CreateCommit(Committing):
    """A request Libris already knows about, to be stored locally."""

    orderid: str
    # Raw Libris status.
    status: str
    direction: Direction = Direction.IN
    borrowernumber: int | None = None
    biblio_id: int | None = None
    branchcode: str | None = None
    medium: str | None = None
    backend: str = BACKEND_NAME
    attr: dict[str, str | None] = Field(default_factory=dict)


class ConfirmForm(AwaitingInput): ...


class ConfirmCommit(Committing): ...


class ReceiveForm(AwaitingInput): ...


class ReceiveCommit(Committing):
    send_email: bool = False
    send_sms: bool = False
    letter_code: str | None = None
    email_title: str = ""
    email_content: str = ""
    sms_title: str = ""
    sms_content: str = ""
    due_date_guar: str | None = None
    due_date_max: str | None = None
    ill_barcode: str | None = None


class RespondForm(AwaitingInput): ...


class RespondCommit(Committing):
    response_id: str
    added_response: str = ""
    may_reserve: bool = False


class StatusQuery(AwaitingInput): ...


class StatusDone(Committing): ...


CreateParams: TypeAlias = CreateForm | CreateCommit
ConfirmParams: TypeAlias = ConfirmForm | ConfirmCommit
ReceiveParams: TypeAlias = ReceiveForm | ReceiveCommit
RespondParams: TypeAlias = RespondForm | RespondCommit
StatusParams: TypeAlias = StatusQuery | StatusDone


class UnknownStage(IllValueError):
    def __init__(self, action: str, stage: str | None):
        super().__init__(f"Unknown stage {stage!r} for action '{action}'.")
        self.action = action
        self.stage = stage


# For every two-phase action: the model of each stage label. The None
# entry is used when no stage is given.
STAGES: frozendict[str, frozendict[str | None, type[ActionParams]]] = frozendict(
    {
        "create": frozendict({None: CreateForm, "from_api": CreateCommit}),
        "confirm": frozendict({None: ConfirmForm, "response": ConfirmCommit}),
        "receive": frozendict({None: ReceiveForm, "receive": ReceiveCommit}),
        "respond": frozendict({None: RespondForm, "response": RespondCommit}),
        "status": frozendict(
            {None: StatusQuery, "init": StatusQuery, "status": StatusDone}
        ),
    }
)

# Actions that show their form for any stage they don't recognize. Other
# actions refuse unknown stages.
LENIENT_ACTIONS = frozenset({"create", "confirm", "receive", "respond"})

SINGLE_PHASE_ACTIONS = frozenset({"set_status_read", "close", "renew", "cancel"})


def parse_params(action: str, other: Mapping[str, Any] | None) -> ActionParams:
    """Turn a form bag into the parameters of one phase of `action`.

    :raises UnknownStage: if `action` does not have the given stage.
    :raises pydantic.ValidationError: if fields are missing or invalid.
    """
    other = other or {}
    stages = STAGES[action]
    stage = other.get("stage") or None
    model = stages.get(stage)
    if model is None:
        if action not in LENIENT_ACTIONS:
            raise UnknownStage(action, stage)
        model = stages[None]
    return model.model_validate({k: v for k, v in other.items() if k != "stage"})
