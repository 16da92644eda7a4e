"""
Record handlers: convert validated records into entities and persist them.

Target types are resolved by symbolic name through a HandlerRegistry, so a
configuration only ever names a registered handler (e.g. ``employee``).
"""

import logging
from typing import Any, Dict, List, Mapping, Optional, Sequence

from sqlalchemy import and_, inspect, select
from sqlalchemy.orm import sessionmaker

from folder_ingest.casting import cast_value
from folder_ingest.database import Employee
from folder_ingest.exceptions import ConfigurationError
from folder_ingest.models import FieldRule

logger = logging.getLogger(__name__)


class RecordHandler:
    """Contract between the pipeline and one persisted record type."""

    type_name: str = ""

    def writable_fields(self) -> List[str]:
        raise NotImplementedError

    def validate_shape(self, fields: Sequence[str]) -> List[str]:
        """Return the field names this type has no writable property for."""
        writable = set(self.writable_fields())
        return [name for name in fields if name not in writable]

    def new_instance(self) -> Any:
        raise NotImplementedError

    def set_field(self, instance: Any, name: str, value: Any) -> None:
        raise NotImplementedError

    def upsert(self, instance: Any) -> None:
        raise NotImplementedError

    def exists_by_fields(self, values: Mapping[str, Any]) -> bool:
        raise NotImplementedError


class SqlAlchemyRecordHandler(RecordHandler):
    """Handler for any declarative model; identity is the model's primary key."""

    def __init__(self, type_name: str, model, session_factory: sessionmaker):
        self.type_name = type_name
        self.model = model
        self.session_factory = session_factory
        self._columns = {attr.key: attr for attr in inspect(model).column_attrs}

    def writable_fields(self) -> List[str]:
        return list(self._columns)

    def new_instance(self):
        return self.model()

    def set_field(self, instance, name: str, value: Any) -> None:
        if name not in self._columns:
            raise AttributeError(f"{self.model.__name__} has no writable field '{name}'")
        setattr(instance, name, value)

    def upsert(self, instance) -> None:
        with self.session_factory() as session:
            with session.begin():
                session.merge(instance)

    def exists_by_fields(self, values: Mapping[str, Any]) -> bool:
        unknown = self.validate_shape(list(values))
        if unknown:
            raise ConfigurationError(
                f"{self.model.__name__} cannot be searched by unknown field(s): {', '.join(unknown)}"
            )

        conditions = []
        for name, value in values.items():
            column = getattr(self.model, name)
            conditions.append(column.is_(None) if value is None else column == value)

        stmt = select(self.model).where(and_(*conditions)).limit(1)
        with self.session_factory() as session:
            return session.execute(stmt).first() is not None


class HandlerRegistry:
    """Maps stable symbolic names to record handlers."""

    def __init__(self):
        self._handlers: Dict[str, RecordHandler] = {}

    def register(self, handler: RecordHandler) -> None:
        key = handler.type_name.lower()
        if key in self._handlers:
            logger.warning(f"Replacing record handler '{handler.type_name}'")
        self._handlers[key] = handler

    def get(self, type_name: Optional[str]) -> RecordHandler:
        handler = self._handlers.get((type_name or "").lower())
        if handler is None:
            raise ConfigurationError(
                f"Unknown target type '{type_name}' (registered: {', '.join(sorted(self._handlers)) or 'none'})"
            )
        return handler

    def names(self) -> List[str]:
        return sorted(self._handlers)


def default_handler_registry(session_factory: sessionmaker) -> HandlerRegistry:
    """Registry with the shipped ``employee`` handler."""
    registry = HandlerRegistry()
    registry.register(SqlAlchemyRecordHandler("employee", Employee, session_factory))
    return registry


def to_entity(record: Mapping[str, Optional[str]], rules: Sequence[FieldRule], handler: RecordHandler):
    """Build an entity from a validated record.

    Fields the handler cannot write are skipped; blank values become None.

    Raises:
        ValueError: When a value cannot be converted or assigned
    """
    writable = set(handler.writable_fields())
    instance = handler.new_instance()
    try:
        for rule in rules:
            if rule.name not in writable:
                continue
            handler.set_field(instance, rule.name, cast_value(record.get(rule.name), rule.type))
    except (ValueError, AttributeError, TypeError) as e:
        raise ValueError(f"Cannot map record to entity {handler.type_name}: {e}") from e
    return instance


def persist_record(record: Mapping[str, Optional[str]], rules: Sequence[FieldRule], handler: RecordHandler) -> None:
    """Convert and upsert one validated record."""
    handler.upsert(to_entity(record, rules, handler))
