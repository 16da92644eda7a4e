"""
SQLAlchemy models and engine helpers.

Tables:
- employees: example target record type persisted by the ``employee`` handler
- log_chargement / log_chargement_detail: durable import log per file
"""

import logging
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    BigInteger,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    create_engine,
    func,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


class Employee(Base):
    """Example target record; identity is the business id from the file."""

    __tablename__ = "employees"

    id: Mapped[int] = mapped_column(BigInteger().with_variant(Integer, "sqlite"), primary_key=True,
                                    autoincrement=False)
    firstName: Mapped[Optional[str]] = mapped_column("first_name", String(100))
    lastName: Mapped[Optional[str]] = mapped_column("last_name", String(100))
    position: Mapped[Optional[str]] = mapped_column(String(255))
    department: Mapped[Optional[str]] = mapped_column(String(255))
    hireDate: Mapped[Optional[date]] = mapped_column("hire_date", Date)
    salary: Mapped[Optional[Decimal]] = mapped_column(Numeric(19, 2))

    def __repr__(self) -> str:
        return f"Employee(id={self.id}, firstName={self.firstName!r}, lastName={self.lastName!r})"


class ImportLog(Base):
    """Processing outcome of one file."""

    __tablename__ = "log_chargement"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    file_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, server_default=func.now(), nullable=False)
    total_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    success_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    failed_lines: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    details: Mapped[List["ImportLogDetail"]] = relationship(
        back_populates="log",
        cascade="all, delete-orphan",
        order_by="ImportLogDetail.id",
    )


class ImportLogDetail(Base):
    """Outcome of one record of a file."""

    __tablename__ = "log_chargement_detail"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    log_id: Mapped[int] = mapped_column(
        ForeignKey("log_chargement.id", ondelete="CASCADE"), nullable=False, index=True
    )
    line_number: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False)
    detail_problem: Mapped[Optional[str]] = mapped_column(Text)

    log: Mapped[ImportLog] = relationship(back_populates="details")


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine; in-memory SQLite shares one connection across threads."""
    if database_url.startswith("sqlite") and (":memory:" in database_url or database_url == "sqlite://"):
        return create_engine(
            database_url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    if database_url.startswith("sqlite"):
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})
    return create_engine(database_url, echo=echo)


def init_db(engine: Engine) -> sessionmaker:
    """Create all tables and return a session factory bound to the engine."""
    Base.metadata.create_all(engine)
    logger.info(f"Database ready: {engine.url.render_as_string(hide_password=True)}")
    return sessionmaker(bind=engine, expire_on_commit=False)
