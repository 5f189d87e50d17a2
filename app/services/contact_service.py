from typing import Optional
from uuid import UUID

from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.sql import func

from app.logging_config import get_logger
from app.models import Contact

logger = get_logger("contact_service")


def upsert_contact(db: Session, user_id: UUID, phone: str, name: str) -> bool:
    """Insert the contact or refresh its name. Failures are logged and swallowed.

    Runs in a SAVEPOINT so a failed upsert does not abort the surrounding
    transaction that records the inbound message.
    """
    stmt = insert(Contact).values(user_id=user_id, phone=phone, name=name or None)
    stmt = stmt.on_conflict_do_update(
        index_elements=["user_id", "phone"],
        set_={"name": func.coalesce(func.nullif(stmt.excluded.name, ""), Contact.name)},
    )
    try:
        with db.begin_nested():
            db.execute(stmt)
    except SQLAlchemyError as e:
        logger.error(
            f"Error saving contact: {e}",
            extra={"context": {"user_id": str(user_id), "phone": phone}},
        )
        return False

    logger.info("Contact saved", extra={"context": {"user_id": str(user_id), "phone": phone}})
    return True


def get_contact_name(db: Session, user_id: UUID, phone: str) -> Optional[str]:
    contact = db.query(Contact).filter(Contact.user_id == user_id, Contact.phone == phone).first()
    if contact and contact.name:
        return contact.name
    return None
