"""Tiered storage of process instance ids per form and caller.

A process started from a form is looked up again later, often from a
different page, to show its decision flow. The id is written to every tier
that applies to the caller and read back from the first tier that has it:

- ``session``: bound to the caller's session id, expiring after 24 hours.
- ``identity``: bound to an authenticated user id, usually durable.
- ``anonymous``: keyed by user id or session id, expiring after 24 hours.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional, Union

from dmn_form_bridge.marshalling import sanitize_text
from dmn_form_bridge.tracking.stores import (
    CorrelationStore,
    InMemoryStore,
    JsonFileStore,
    StoreUnavailableError,
)

logger = logging.getLogger(__name__)

ANONYMOUS_TTL_SECONDS = 24 * 60 * 60
SESSION_TTL_SECONDS = 24 * 60 * 60


class TierScope(str, Enum):
    """What a tier's records are bound to."""

    SESSION = "session"
    IDENTITY = "identity"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class CallerIdentity:
    """The caller on whose behalf a process instance is tracked.

    Attributes:
        session_id: Session token, if the caller has a session.
        user_id: Authenticated user id, if any.
    """

    session_id: Optional[str] = None
    user_id: Optional[str] = None


@dataclass
class Tier:
    """A store and the scope its keys are derived from.

    Attributes:
        scope: Which caller attribute keys records.
        store: Backing correlation store.
        ttl: Record lifetime in seconds (None keeps records indefinitely).
    """

    scope: TierScope
    store: CorrelationStore
    ttl: Optional[float] = None

    def __post_init__(self):
        self.scope = TierScope(self.scope)
        if self.ttl is not None and self.ttl <= 0:
            raise ValueError("Tier ttl must be positive")

    def key_for(self, form_id: str, caller: CallerIdentity) -> Optional[str]:
        """Storage key for a form and caller, or None if the tier does not apply."""
        if self.scope == TierScope.SESSION:
            owner = caller.session_id
        elif self.scope == TierScope.IDENTITY:
            owner = caller.user_id
        else:
            owner = caller.user_id or caller.session_id

        if not owner:
            return None
        return f"process:{self.scope.value}:{owner}:{form_id}"


def default_tiers(identity_path: Optional[Union[str, Path]] = None) -> List[Tier]:
    """Session, identity and anonymous tiers.

    Args:
        identity_path: JSON file for durable identity records; kept in memory
            when omitted.
    """
    identity_store = JsonFileStore(identity_path) if identity_path else InMemoryStore()
    return [
        Tier(TierScope.SESSION, InMemoryStore(), ttl=SESSION_TTL_SECONDS),
        Tier(TierScope.IDENTITY, identity_store),
        Tier(TierScope.ANONYMOUS, InMemoryStore(), ttl=ANONYMOUS_TTL_SECONDS),
    ]


class ProcessInstanceTracker:
    """Stores and retrieves process instance ids across ordered tiers.

    Attributes:
        tiers: Tiers in priority order.

    Example:
        >>> tracker = ProcessInstanceTracker()
        >>> caller = CallerIdentity(session_id="abc")
        >>> tracker.store_process_instance("8", "pid-123", caller)
        True
        >>> tracker.get_tracked_process_instance("8", caller)
        'pid-123'
    """

    def __init__(self, tiers: Optional[List[Tier]] = None):
        self.tiers = tiers if tiers is not None else default_tiers()

    def store_process_instance(self, form_id: str, process_instance_id: str, caller: Optional[CallerIdentity]) -> bool:
        """Write an id to every tier that applies to the caller.

        Returns:
            True if at least one tier stored the id, False for empty ids or
            when no tier accepted it.
        """
        form_id = sanitize_text(form_id or "")
        process_instance_id = sanitize_text(process_instance_id or "")
        if not form_id or not process_instance_id:
            logger.warning("Cannot store process instance: form id and instance id are required")
            return False

        caller = caller or CallerIdentity()
        stored = 0
        for tier in self.tiers:
            key = tier.key_for(form_id, caller)
            if key is None:
                continue
            try:
                tier.store.set(key, process_instance_id, tier.ttl)
                stored += 1
            except StoreUnavailableError as e:
                logger.warning(f"Skipping {tier.scope.value} tier on write: {e}")

        logger.info(f"Stored process instance {process_instance_id} for form {form_id} in {stored} tier(s)")
        return stored > 0

    def get_tracked_process_instance(self, form_id: str, caller: Optional[CallerIdentity]) -> Optional[str]:
        """Read the id from the first tier that has one."""
        form_id = sanitize_text(form_id or "")
        if not form_id:
            return None

        caller = caller or CallerIdentity()
        for tier in self.tiers:
            key = tier.key_for(form_id, caller)
            if key is None:
                continue
            try:
                value = tier.store.get(key)
            except StoreUnavailableError as e:
                logger.warning(f"Skipping {tier.scope.value} tier on read: {e}")
                continue
            if value:
                logger.debug(f"Found process instance for form {form_id} in {tier.scope.value} tier")
                return value

        return None

    def forget(self, form_id: str, caller: Optional[CallerIdentity]) -> None:
        """Remove the form's record from every applicable tier."""
        form_id = sanitize_text(form_id or "")
        caller = caller or CallerIdentity()
        for tier in self.tiers:
            key = tier.key_for(form_id, caller)
            if key is None:
                continue
            try:
                tier.store.delete(key)
            except StoreUnavailableError as e:
                logger.warning(f"Skipping {tier.scope.value} tier on delete: {e}")
