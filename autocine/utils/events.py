"""Observable containers published to UI consumers."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Generic, Iterator, List, Optional, TypeVar

K = TypeVar("K")
V = TypeVar("V")


@dataclass(slots=True, frozen=True)
class PipelineEvent:
    """A single published event: a log line or a stage transition."""

    kind: str
    message: str
    timestamp: datetime


Listener = Callable[[PipelineEvent], None]


class EventLog:
    """Append-only stream of timestamped, human-readable lines.

    Listeners are invoked synchronously on every append; a UI layer can use
    them to push updates instead of polling ``lines``.
    """

    def __init__(self, clock: Callable[[], datetime] = datetime.now) -> None:
        self._clock = clock
        self._events: List[PipelineEvent] = []
        self._listeners: List[Listener] = []

    def info(self, message: str) -> PipelineEvent:
        return self._append("log", message)

    def warning(self, message: str) -> PipelineEvent:
        return self._append("warning", message)

    def stage(self, stage_name: str) -> PipelineEvent:
        return self._append("stage", stage_name)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def clear(self) -> None:
        self._events.clear()

    @property
    def events(self) -> List[PipelineEvent]:
        return list(self._events)

    @property
    def lines(self) -> List[str]:
        """Rendered ``[HH:MM:SS] message`` lines in append order."""
        return [self._render(event) for event in self._events if event.kind != "stage"]

    def contains(self, fragment: str) -> bool:
        return any(fragment in event.message for event in self._events)

    def _append(self, kind: str, message: str) -> PipelineEvent:
        event = PipelineEvent(kind=kind, message=str(message), timestamp=self._clock())
        self._events.append(event)
        for listener in list(self._listeners):
            listener(event)
        return event

    @staticmethod
    def _render(event: PipelineEvent) -> str:
        return f"[{event.timestamp.strftime('%H:%M:%S')}] {event.message}"

    def __len__(self) -> int:
        return len(self._events)


class ObservableMap(Generic[K, V]):
    """Dict-like map that notifies subscribers on every write or removal."""

    def __init__(self) -> None:
        self._items: Dict[K, V] = {}
        self._listeners: List[Callable[[K, Optional[V]], None]] = []

    def subscribe(self, listener: Callable[[K, Optional[V]], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _unsubscribe

    def get(self, key: K, default: Any = None) -> Optional[V]:
        return self._items.get(key, default)

    def snapshot(self) -> Dict[K, V]:
        return dict(self._items)

    def clear(self) -> None:
        for key in list(self._items):
            del self[key]

    def __setitem__(self, key: K, value: V) -> None:
        self._items[key] = value
        self._notify(key, value)

    def __getitem__(self, key: K) -> V:
        return self._items[key]

    def __delitem__(self, key: K) -> None:
        del self._items[key]
        self._notify(key, None)

    def __contains__(self, key: object) -> bool:
        return key in self._items

    def __iter__(self) -> Iterator[K]:
        return iter(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def values(self) -> List[V]:
        return list(self._items.values())

    def items(self) -> List[tuple[K, V]]:
        return list(self._items.items())

    def _notify(self, key: K, value: Optional[V]) -> None:
        for listener in list(self._listeners):
            listener(key, value)
