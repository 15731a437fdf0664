from sqlalchemy.orm import Session, joinedload
from warranty.models.activity_log import ActivityLog, ActivityAction
from warranty.schemas.activity_log import ActorContext
from typing import Optional, List, Any
import json
import logging

logger = logging.getLogger(__name__)


FIELD_LABELS = {
    "status": "Status",
    "first_deadline": "1. Frist",
    "second_deadline": "2. Frist",
    "completed_at": "Erledigt am",
    "acceptance": "Abnahme",
    "house_type": "Haustyp",
    "bauleitung_id": "Bauleitung",
    "verantwortlicher_id": "Verantwortlicher",
    "gewerk_id": "Gewerk",
    "firma_id": "Firma",
    "first_name": "Vorname",
    "last_name": "Nachname",
    "street": "Straße",
    "postal_code": "PLZ",
    "city": "Ort",
    "tc_number": "Bauvorhaben-Nummer",
    "email": "E-Mail",
    "phone": "Telefon",
    "description": "Beschreibung",
    "password": "Passwort",
}

ENTITY_LABELS = {
    "submission": "Meldung",
    "admin_user": "Benutzer",
    "master_data": "Stammdaten-Eintrag",
}


def _serialize(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, ensure_ascii=False)


def log_activity(
    db: Session,
    actor: ActorContext,
    action: ActivityAction,
    entity_type: str,
    entity_id: str,
    old_value: Any = None,
    new_value: Any = None,
    commit: bool = True,
) -> ActivityLog:
    """Append an activity log entry"""
    entry = ActivityLog(
        user_id=actor.user_id,
        action=action.value,
        entity_type=entity_type,
        entity_id=str(entity_id),
        old_value=_serialize(old_value),
        new_value=_serialize(new_value),
        ip_address=actor.ip_address,
        user_agent=actor.user_agent,
    )
    db.add(entry)
    if commit:
        db.commit()
        db.refresh(entry)
    return entry


def get_activity(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    entity_id: Optional[str] = None,
) -> List[ActivityLog]:
    """Activity log entries, newest first"""
    query = db.query(ActivityLog).options(joinedload(ActivityLog.user))
    if entity_id:
        query = query.filter(ActivityLog.entity_id == entity_id)
    return query.order_by(ActivityLog.created_at.desc()).offset(skip).limit(limit).all()


def count_activity(db: Session, entity_id: Optional[str] = None) -> int:
    query = db.query(ActivityLog)
    if entity_id:
        query = query.filter(ActivityLog.entity_id == entity_id)
    return query.count()


def _load(value: Optional[str]) -> Any:
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


def _display(value: Any) -> str:
    if value is None or value == "":
        return "leer"
    return str(value)


def describe_activity(entry: ActivityLog) -> str:
    """
    German one-line description of a log entry for the activity view.

    Field updates store ``{field: value}`` in old_value / new_value.
    """
    who = entry.user.username if entry.user else "Unbekannt"
    old = _load(entry.old_value)
    new = _load(entry.new_value)

    entity = ENTITY_LABELS.get(entry.entity_type, entry.entity_type)

    if entry.action == ActivityAction.deleted.value:
        snapshot = old if isinstance(old, dict) else {}
        if snapshot.get("tc_number"):
            return f"{who} hat {entity} {entry.entity_id} gelöscht (BV {snapshot['tc_number']})"
        label = snapshot.get("username") or snapshot.get("name") or entry.entity_id
        return f"{who} hat {entity} {label} gelöscht"

    if entry.action == ActivityAction.created.value:
        snapshot = new if isinstance(new, dict) else {}
        label = snapshot.get("username") or snapshot.get("name") or entry.entity_id
        return f"{who} hat {entity} {label} angelegt"

    if isinstance(new, dict) and len(new) == 1:
        field = next(iter(new))
        label = FIELD_LABELS.get(field, field)
        old_value = old.get(field) if isinstance(old, dict) else None
        if entry.action == ActivityAction.status_changed.value:
            return f"{who} hat den Status von {_display(old_value)} auf {_display(new[field])} geändert"
        return f"{who} hat {label} von {_display(old_value)} auf {_display(new[field])} geändert"

    return f"{who}: {entry.action} {entry.entity_type} {entry.entity_id}"
