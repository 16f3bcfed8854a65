from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError
from sqlalchemy.orm import Session

from palace.ill.attributes import AttributeStore
from palace.ill.libris.client import LibrisClient
from palace.ill.libris.constants import BACKEND_NAME
from palace.ill.lifecycle.lifecycle import RequestLifecycle
from palace.ill.lifecycle.outcome import Outcome
from palace.ill.lifecycle.params import (
    SINGLE_PHASE_ACTIONS,
    STAGES,
    UnknownStage,
    parse_params,
)
from palace.ill.lifecycle.settings import LifecycleSettings
from palace.ill.notifications import LetterPreparer, NotificationDispatcher
from palace.ill.sqlalchemy.model import IllRequest
from palace.ill.status.graph import StatusGraph
from palace.ill.status.translator import StatusTranslator
from palace.ill.util.log import LoggerMixin


class LibrisBackend(LoggerMixin):
    """The ILL backend as the library system sees it.

    Actions are called by name with the request and the submitted form
    fields, and answer with a plain dict:

        {error, status, message, method, stage, next, value}
    """

    ACTIONS = frozenset(STAGES) | SINGLE_PHASE_ACTIONS

    def __init__(self, lifecycle: RequestLifecycle):
        self.lifecycle = lifecycle

    @staticmethod
    def name() -> str:
        return BACKEND_NAME

    def status_graph(self) -> dict[str, dict[str, Any]]:
        return self.lifecycle.graph.to_dict()

    def metadata(self, request: IllRequest) -> dict[str, str]:
        return self.lifecycle.metadata(request)

    def dispatch(
        self,
        method: str,
        request: IllRequest,
        other: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        return self.run(method, request, other).to_dict()

    def run(
        self,
        method: str,
        request: IllRequest,
        other: Mapping[str, Any] | None = None,
    ) -> Outcome:
        if method not in self.ACTIONS:
            self.log.warning(f"Unknown ILL action {method!r}.")
            return Outcome.failure(
                method, "unknown_method", f"Unknown action '{method}'.", next=None
            )

        if method in SINGLE_PHASE_ACTIONS:
            action = getattr(self.lifecycle, method)
            return action(request)

        try:
            params = parse_params(method, other)
        except UnknownStage as e:
            return Outcome.failure(
                method, "unknown_stage", "", stage=e.stage or "", next=None
            )
        except ValidationError as e:
            fields = ", ".join(str(error["loc"][0]) for error in e.errors() if error["loc"])
            return Outcome.failure(
                method,
                "invalid_parameters",
                f"Missing or invalid fields: {fields}.",
                stage="form",
            )
        return getattr(self.lifecycle, method)(request, params)


def create_backend(
    db: Session,
    *,
    graph: StatusGraph,
    translator: StatusTranslator,
    client: LibrisClient,
    dispatcher: NotificationDispatcher,
    letters: LetterPreparer,
    settings: LifecycleSettings,
) -> LibrisBackend:
    """A backend working in the given database session."""
    attributes = AttributeStore(
        db, legacy_append_only=settings.legacy_append_only_attributes
    )
    lifecycle = RequestLifecycle(
        db,
        graph=graph,
        translator=translator,
        client=client,
        attributes=attributes,
        dispatcher=dispatcher,
        letters=letters,
        settings=settings,
    )
    return LibrisBackend(lifecycle)
