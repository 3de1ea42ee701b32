"""Customer records, keyed by the digits of the customer's phone number."""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from gemach.db.models import CustomerRow
from gemach.db.store import Store
from gemach.schemas.booking_schema import Customer
from gemach.utils import normalize_phone, phone_key, utc_now

logger = logging.getLogger(__name__)


def upsert_customer_in(session: Session, phone: str, name: str) -> Customer:
    """Create the customer or refresh the stored name. Idempotent by phone."""
    customer_id = phone_key(phone)
    row = session.get(CustomerRow, customer_id)
    now = utc_now()
    if row is None:
        row = CustomerRow(id=customer_id, name=name, phone=normalize_phone(phone),
                          created_at=now, updated_at=now)
        session.add(row)
        logger.info("New customer created: %s (%s)", name, customer_id)
    else:
        row.name = name
        row.updated_at = now
    session.flush()
    return Customer.model_validate(row)


def upsert_customer(store: Store, phone: str, name: str) -> Customer:
    with store.transaction() as session:
        return upsert_customer_in(session, phone, name)


def lookup_customer(store: Store, phone: str) -> Optional[Customer]:
    """Look up a customer by phone number. Returns None if not found."""
    with store.transaction() as session:
        row = session.get(CustomerRow, phone_key(phone))
        if row is None:
            return None
        logger.debug("Returning customer found: %s", row.name)
        return Customer.model_validate(row)
