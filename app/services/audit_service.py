import logging
from typing import Optional, Dict, Any, List

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.models.audit_log import AuditLog


logger = logging.getLogger(__name__)


class AuditService:
    """
    Audit service for logging yard state transitions.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            action: The action performed (CREATE_EVENT, PROCESS_EVENT, ...)
            entity_type: Type of entity (event, yard_slot)
            entity_id: ID of the affected entity
            payload: Data describing the transition
            ip_address: Client IP address
            user_agent: Client user agent

        Returns:
            The created AuditLog entry
        """
        audit_log = AuditLog(
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            payload=payload,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(audit_log)
        await self.db.flush()
        return audit_log

    async def log_slot_updated(
        self,
        slot_id: int,
        old_data: Dict[str, Any],
        new_data: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """Log a manual slot change."""
        return await self.log(
            action="UPDATE_SLOT",
            entity_type="yard_slot",
            entity_id=slot_id,
            payload={"old": old_data, "new": new_data},
            ip_address=ip_address,
            user_agent=user_agent,
        )

    async def get_logs(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[int] = None,
        action: Optional[str] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[AuditLog], int]:
        """Get audit logs with filtering, newest first."""
        query = select(AuditLog)
        count_query = select(func.count(AuditLog.id))

        if entity_type:
            query = query.where(AuditLog.entity_type == entity_type)
            count_query = count_query.where(AuditLog.entity_type == entity_type)
        if entity_id is not None:
            query = query.where(AuditLog.entity_id == entity_id)
            count_query = count_query.where(AuditLog.entity_id == entity_id)
        if action:
            query = query.where(AuditLog.action == action)
            count_query = count_query.where(AuditLog.action == action)

        total = (await self.db.execute(count_query)).scalar() or 0

        query = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total


class AuditRecorder:
    """
    Best-effort audit sink for the event processor.

    Writes each entry in its own session so an audit failure can never roll
    back or block the transition it describes.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        payload: Optional[Dict[str, Any]] = None,
    ) -> None:
        try:
            async with self.session_factory() as session:
                await AuditService(session).log(action, entity_type, entity_id, payload)
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to create audit log ({action} {entity_type} {entity_id}): {e}")
