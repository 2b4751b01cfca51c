"""Assembles learning state, learning events and the global summary for a tenant."""

from __future__ import annotations

from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from ..exceptions import PersistenceError
from ..models.base import get_session_factory, session_scope
from ..models.repository import MetricSampleRepository, ScoreHistoryRepository
from ..scoring.learning import (
    LearningEvent,
    LearningInputs,
    LearningState,
    ScoreSnapshot,
    derive_learning_state,
    generate_learning_events,
    recent_learning_events,
    summarize_learning,
)
from ..utils.config import GlobalSettings


class LearningStateService:
    def __init__(
        self,
        settings: GlobalSettings,
        session_factory: sessionmaker[Session] | None = None,
    ):
        self.settings = settings
        self._session_factory = session_factory

    @property
    def session_factory(self) -> sessionmaker[Session]:
        return self._session_factory or get_session_factory()

    def load_inputs(self, user_id: str) -> list[LearningInputs]:
        """Read the stored history for every integration the tenant has reported on."""

        try:
            with session_scope(self.session_factory) as session:
                history = ScoreHistoryRepository(session).history_by_integration(user_id)
                samples = MetricSampleRepository(session).timestamps_by_integration(user_id)
        except SQLAlchemyError as exc:
            raise PersistenceError(f"Failed to load learning history: {exc}") from exc

        names = sorted(set(history) | set(samples))
        return [
            LearningInputs(
                integration_name=name,
                snapshots=tuple(
                    ScoreSnapshot(score=score, recorded_at=recorded_at)
                    for score, recorded_at in history.get(name, [])
                ),
                metric_timestamps=tuple(samples.get(name, [])),
            )
            for name in names
        ]

    def derive(self, user_id: str) -> tuple[list[LearningState], list[LearningEvent]]:
        states: list[LearningState] = []
        events: list[LearningEvent] = []
        for inputs in self.load_inputs(user_id):
            integration_events = generate_learning_events(inputs)
            states.append(derive_learning_state(inputs, integration_events))
            events.extend(integration_events)
        return states, events

    def learning_state(self, user_id: str) -> dict[str, Any]:
        states, events = self.derive(user_id)
        page = recent_learning_events(events, limit=self.settings.learning_event_display_limit)
        return {
            "success": True,
            "learning_states": [state.as_dict() for state in states],
            "learning_events": page.as_dict(),
            "global_summary": summarize_learning(states).as_dict(),
        }
