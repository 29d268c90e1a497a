import json
import uuid

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog

OPERATOR_ACTOR = "operator"


def log_operator_action(db: Session, action: str, booking_id: int, details: dict | None = None) -> None:
    """Stage an audit row for an operator change to a booking; committed with the change itself.

    Callers pass identifiers only. Secrets and corrected identity values never go into details.
    """
    db.add(AuditLog(
        id=str(uuid.uuid4()),
        actor=OPERATOR_ACTOR,
        action=action,
        entity_type="booking",
        entity_id=str(booking_id),
        details_json=json.dumps(details or {}, ensure_ascii=False),
    ))
