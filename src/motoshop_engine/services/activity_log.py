"""Best-effort activity logging.

Activity rows ride along in the caller's unit of work. Anything that goes
wrong while building or staging them is logged and dropped so it can never
fail or roll back the business operation that triggered it.
"""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from motoshop_engine.models import ActivityLog

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return value


class ActivityLogger:
    """Stages activity log rows on a session without ever raising."""

    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        entity_type: str,
        entity_id: UUID,
        action: str,
        actor_user_id: UUID | None = None,
        details: dict[str, Any] | None = None,
    ) -> ActivityLog | None:
        """Stage an activity row; returns None when it could not be built."""
        try:
            payload = _jsonable(details) if details is not None else None
            if payload is not None:
                # Fail here, not at flush time, on values JSON cannot carry
                json.dumps(payload)
            entry = ActivityLog(
                actor_user_id=actor_user_id,
                entity_type=entity_type,
                entity_id=entity_id,
                action=action,
                details=payload,
            )
            self.session.add(entry)
            return entry
        except Exception:
            logger.exception(
                "Failed to record activity %s for %s %s", action, entity_type, entity_id
            )
            return None
