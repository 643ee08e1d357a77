"""Event publishers that deliver directly, without staging."""

from __future__ import annotations

from dataclasses import dataclass, field

import loguru
from loguru import logger
from pydantic import BaseModel


class LoggingPublisher:
    """Writes every event to the log. Used where no broker is configured."""

    def __init__(self, logger_instance: loguru.Logger = logger) -> None:
        self._logger = logger_instance

    def publish(self, subject: str, payload: BaseModel) -> None:
        self._logger.bind(subject=subject).info(
            "event {} {}", subject, payload.model_dump_json()
        )


@dataclass(frozen=True, slots=True)
class PublishedEvent:
    subject: str
    body: str  # serialized payload, exactly as a broker would receive it


@dataclass
class RecordingPublisher:
    """Keeps published events in memory, in publish order."""

    events: list[PublishedEvent] = field(default_factory=list)

    def publish(self, subject: str, payload: BaseModel) -> None:
        self.events.append(
            PublishedEvent(subject=subject, body=payload.model_dump_json())
        )

    def subjects(self) -> list[str]:
        return [event.subject for event in self.events]

    def clear(self) -> None:
        self.events.clear()
