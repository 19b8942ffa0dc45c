"""
Match registry.

Remembers which HPO IDs the prediction service reported as matched for each
(prediction session, disease) pair, so a later disease-detail lookup can
recover the match status even when the detail payload's own flags are missing.

Entries are scoped by session token. The registry keeps at most
`max_sessions` sessions (oldest write evicted first) and drops sessions whose
last write is older than `ttl_seconds`.
"""

from __future__ import annotations

import logging
import time
import typing
from collections import OrderedDict

from .phenotype import normalize_hpo_id

LOGGER = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 24 * 60 * 60
DEFAULT_MAX_SESSIONS = 64


def normalize_disease_name(name: typing.Optional[str]) -> str:
    return (name or "").strip().lower()


class MatchRegistry:
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        max_sessions: int = DEFAULT_MAX_SESSIONS,
        clock: typing.Callable[[], float] = time.monotonic,
    ):
        if max_sessions < 1:
            raise ValueError(f"max_sessions must be >= 1, got {max_sessions}")
        self._ttl = ttl_seconds
        self._max_sessions = max_sessions
        self._clock = clock
        # session token -> (last write time, {disease key -> codes})
        self._sessions: "OrderedDict[str, typing.Tuple[float, typing.Dict[str, typing.FrozenSet[str]]]]" = OrderedDict()

    def set_matched(self, session_token: str, disease_name: str, codes: typing.Iterable[str]) -> None:
        """Store the normalized matched codes, overwriting any earlier entry for the pair."""
        normalized = frozenset(normalize_hpo_id(code) for code in codes if code)
        now = self._clock()
        self._evict_expired(now)

        _, diseases = self._sessions.pop(session_token, (now, {}))
        diseases[normalize_disease_name(disease_name)] = normalized
        self._sessions[session_token] = (now, diseases)

        while len(self._sessions) > self._max_sessions:
            evicted, _ = self._sessions.popitem(last=False)
            LOGGER.debug("Evicted match registry session %s (capacity %d)", evicted, self._max_sessions)

    def get_matched(self, session_token: str, disease_name: str) -> typing.Optional[typing.FrozenSet[str]]:
        """
        Return the stored codes, or None when nothing was recorded for the pair.
        An empty frozenset means "recorded, but nothing matched".
        """
        self._evict_expired(self._clock())
        entry = self._sessions.get(session_token)
        if entry is None:
            return None
        return entry[1].get(normalize_disease_name(disease_name))

    def forget(self, session_token: str) -> None:
        self._sessions.pop(session_token, None)

    def clear(self) -> None:
        self._sessions.clear()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, session_token: object) -> bool:
        return session_token in self._sessions

    def _evict_expired(self, now: float) -> None:
        expired = [token for token, (written, _) in self._sessions.items() if now - written > self._ttl]
        for token in expired:
            del self._sessions[token]
            LOGGER.debug("Expired match registry session %s", token)


# Convenience instance for single-process use; prefer passing a registry explicitly
default_registry = MatchRegistry()
