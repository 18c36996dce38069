import uuid

from sqlalchemy.orm import Session
from sqlalchemy import or_

from pingradius.core.errors import NotFoundError, PermissionDeniedError, ValidationError
from pingradius.schemas.enums import ConnectionStatus
from .models import Connection


# ---------- LOOKUP ----------

def connections_for(db: Session, user_id: str) -> list[Connection]:
    return (
        db.query(Connection)
        .filter(or_(Connection.user_a == user_id, Connection.user_b == user_id))
        .order_by(Connection.created_at.asc())
        .all()
    )


def find_connection(db: Session, user_id: str, other_id: str) -> Connection | None:
    """
    Scan the user's connections for one that includes `other_id`.
    Duplicate pairs are possible; an active record wins over a pending one.
    """
    found = None
    for conn in connections_for(db, user_id):
        if other_id not in conn.participants:
            continue
        if conn.status == ConnectionStatus.active.value:
            return conn
        found = found or conn
    return found


def active_connection_ids(db: Session, user_id: str) -> set[str]:
    out: set[str] = set()
    for conn in connections_for(db, user_id):
        if conn.status != ConnectionStatus.active.value:
            continue
        other = conn.user_b if conn.user_a == user_id else conn.user_a
        if other and other != user_id:
            out.add(other)
    return out


# ---------- CONNECTION LOGIC ----------

def request_connection(db: Session, requester_id: str, target_id: str) -> Connection:
    if requester_id == target_id:
        raise ValidationError("Cannot connect to self")

    existing = find_connection(db, requester_id, target_id)
    if existing:
        return existing

    conn = Connection(
        id=uuid.uuid4().hex,
        user_a=requester_id,
        user_b=target_id,
        initiator=requester_id,
        status=ConnectionStatus.pending.value,
    )
    db.add(conn)
    db.commit()
    db.refresh(conn)
    return conn


def accept_connection(db: Session, connection_id: str, accepter_id: str) -> Connection:
    conn = db.query(Connection).filter(Connection.id == connection_id).first()
    if not conn:
        raise NotFoundError("Connection not found")

    if accepter_id not in conn.participants:
        raise PermissionDeniedError("Not authorized")

    if accepter_id == conn.initiator:
        raise PermissionDeniedError("Initiator cannot accept their own request")

    conn.status = ConnectionStatus.active.value
    db.commit()
    db.refresh(conn)
    return conn
