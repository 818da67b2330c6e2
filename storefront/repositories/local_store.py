# storefront/repositories/local_store.py
import json
import logging
from datetime import datetime, timezone
from typing import Sequence, TypeVar

from pydantic import ValidationError
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel

from storefront.models.local import LocalEntry

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=SQLModel)


class LocalEphemeralStore:
    """
    Device-local persistence for the cart and saved-items lists.

    - Synchronous; only the event loop thread reads or writes it.
    - Never raises: missing or corrupt data reads as an empty list and
      failed writes are logged.
    """

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self, key: str, model: type[T]) -> list[T]:
        try:
            with Session(self.engine) as session:
                entry = session.get(LocalEntry, key)
        except SQLAlchemyError as exc:
            logger.warning("Local store read failed for %r: %s", key, exc)
            return []

        if entry is None:
            return []

        try:
            raw = json.loads(entry.value)
            if not isinstance(raw, list):
                raise ValueError("expected a JSON array")
            return [model.model_validate(item) for item in raw]
        except (ValueError, ValidationError) as exc:
            logger.warning("Discarding corrupt local data for %r: %s", key, exc)
            return []

    def save(self, key: str, items: Sequence[SQLModel]) -> None:
        """Overwrite the whole sequence stored under `key`."""
        value = json.dumps([item.model_dump(mode="json") for item in items])
        try:
            with Session(self.engine) as session:
                entry = session.get(LocalEntry, key)
                if entry is None:
                    entry = LocalEntry(key=key, value=value)
                else:
                    entry.value = value
                    entry.updated_at = datetime.now(timezone.utc)
                session.add(entry)
                session.commit()
        except SQLAlchemyError as exc:
            logger.error("Local store write failed for %r: %s", key, exc)

    def clear(self, key: str) -> None:
        try:
            with Session(self.engine) as session:
                entry = session.get(LocalEntry, key)
                if entry is not None:
                    session.delete(entry)
                    session.commit()
        except SQLAlchemyError as exc:
            logger.error("Local store clear failed for %r: %s", key, exc)
