"""Declarative routing from event kinds to cache invalidation keys."""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any, Protocol, TypeAlias

from loguru import logger

from porter_realtime.envelope import Envelope
from porter_realtime.payload import SessionStatus, session_id_of, status_of

CacheKey: TypeAlias = str | tuple[str, ...]
KeyFactory: TypeAlias = Callable[[Any], CacheKey | None]
KeyTemplate: TypeAlias = CacheKey | KeyFactory
Predicate: TypeAlias = Callable[[Any], bool]

# Raised by templates and predicates that index into a payload missing the field.
_EVALUATION_ERRORS = (KeyError, IndexError, TypeError, ValueError, AttributeError)


class InvalidationTarget(Protocol):
    """The one operation the router needs from a reactive query cache."""

    def invalidate(self, key: CacheKey) -> None: ...


@dataclass(frozen=True)
class InvalidationRule:
    """Keys to invalidate when an event of ``event_kind`` arrives.

    ``keys`` holds static keys (strings or tuples) and key factories, which
    receive the payload and may return ``None`` to omit their key.
    ``predicate`` gates the whole rule.
    """

    event_kind: str
    keys: tuple[KeyTemplate, ...]
    predicate: Predicate | None = None

    def applies_to(self, payload: Any) -> bool:
        if self.predicate is None:
            return True
        try:
            return bool(self.predicate(payload))
        except _EVALUATION_ERRORS:
            logger.debug("realtime.invalidate.predicate_skipped kind={}", self.event_kind)
            return False

    def render(self, payload: Any) -> list[CacheKey]:
        rendered: list[CacheKey] = []
        for template in self.keys:
            if not callable(template):
                rendered.append(template)
                continue
            try:
                key = template(payload)
            except _EVALUATION_ERRORS:
                logger.debug("realtime.invalidate.template_skipped kind={}", self.event_kind)
                continue
            if key is None:
                continue
            if not _is_cache_key(key):
                logger.debug("realtime.invalidate.template_invalid kind={} key={!r}", self.event_kind, key)
                continue
            rendered.append(key)
        return rendered


def _is_cache_key(value: Any) -> bool:
    if isinstance(value, str):
        return True
    return isinstance(value, tuple) and all(isinstance(part, str) for part in value)


class InvalidationRouter:
    """Turns envelopes into an ordered, de-duplicated set of cache invalidations."""

    def __init__(self, rules: Iterable[InvalidationRule], cache: InvalidationTarget) -> None:
        self._cache = cache
        self._rules: dict[str, list[InvalidationRule]] = defaultdict(list)
        for rule in rules:
            self._rules[rule.event_kind].append(rule)

    @property
    def event_kinds(self) -> frozenset[str]:
        return frozenset(self._rules)

    def keys_for(self, envelope: Envelope) -> list[CacheKey]:
        """Keys for ``envelope`` in rule order then template order, first occurrence wins."""

        keys: dict[CacheKey, None] = {}
        for rule in self._rules.get(envelope.kind, ()):
            if not rule.applies_to(envelope.payload):
                continue
            for key in rule.render(envelope.payload):
                keys.setdefault(key, None)
        return list(keys)

    def __call__(self, envelope: Envelope) -> None:
        keys = self.keys_for(envelope)
        for key in keys:
            self._cache.invalidate(key)
        if keys:
            logger.debug("realtime.invalidate kind={} keys={}", envelope.kind, keys)


def session_key(name: str) -> KeyFactory:
    """Key factory producing ``(name, session_id)`` when the payload carries a session id."""

    def factory(payload: Any) -> CacheKey | None:
        session_id = session_id_of(payload)
        if session_id is None:
            return None
        return (name, session_id)

    factory.__qualname__ = f"session_key({name!r})"
    return factory


def status_in(*statuses: SessionStatus) -> Predicate:
    wanted = frozenset(statuses)

    def predicate(payload: Any) -> bool:
        return status_of(payload) in wanted

    return predicate


def default_rules() -> list[InvalidationRule]:
    """The rule table used by the Porter web console."""

    task_keys: tuple[KeyTemplate, ...] = ("tasks", "server-status")
    return [
        InvalidationRule("TaskCreated", task_keys),
        InvalidationRule("TaskUpdated", task_keys),
        InvalidationRule("TaskDeleted", task_keys),
        InvalidationRule("AgentStatusChanged", ("agent-sessions", "server-status")),
        InvalidationRule(
            "AgentStatusChanged",
            (session_key("agent-session"), session_key("agent-messages")),
            predicate=status_in(SessionStatus.COMPLETED, SessionStatus.FAILED),
        ),
        # Message content of a running session comes from the stream aggregator.
        InvalidationRule("AgentOutput", ("agent-sessions",)),
        InvalidationRule("Notification", ("notifications",)),
    ]
