"""Audit log repository (insert and read only)."""


from firm_portal.domain.audit import AuditLog
from firm_portal.repositories.base import BaseRepository


class AuditLogRepository(BaseRepository[AuditLog]):
    model = AuditLog
    default_order_by = "timestamp"
