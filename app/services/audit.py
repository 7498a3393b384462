from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from app.crud.audit_log import create_audit_log
from app.utils.logger import log, scrub

SUCCESS = "success"
FAILED = "failed"


@dataclass(frozen=True)
class ClientContext:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


class AuditTrail:
    """Persists security events to `audit_logs` and mirrors them to the log."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        action: str,
        outcome: str,
        account_id: Optional[int] = None,
        detail: Optional[dict] = None,
        client: Optional[ClientContext] = None,
    ) -> None:
        client = client or ClientContext()
        safe_detail = scrub(detail or {})
        log.event(action, outcome, account_id=account_id, **safe_detail)
        create_audit_log(
            self.db,
            action=action,
            outcome=outcome,
            account_id=account_id,
            detail=safe_detail,
            ip_address=client.ip_address,
            user_agent=client.user_agent,
        )
