from __future__ import annotations

from datetime import date

from sqlalchemy import Integer, String, UniqueConstraint, select
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Mapped, Session, mapped_column

from app.core.database import Base


class NumberSequence(Base):
    __tablename__ = "number_sequence"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    prefix: Mapped[str] = mapped_column(String(16), nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    last_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    __table_args__ = (UniqueConstraint("prefix", "year", name="uq_number_sequence_prefix_year"),)


def _lock_sequence(session: Session, prefix: str, year: int) -> NumberSequence | None:
    return session.scalar(
        select(NumberSequence)
        .where(NumberSequence.prefix == prefix, NumberSequence.year == year)
        .with_for_update()
    )


def _insert_counter_if_missing(session: Session, prefix: str, year: int) -> None:
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        stmt = postgresql_insert(NumberSequence)
    elif dialect == "sqlite":
        stmt = sqlite_insert(NumberSequence)
    else:
        raise RuntimeError(f"unsupported database dialect for number sequences: {dialect}")
    session.execute(
        stmt.values(prefix=prefix, year=year, last_value=0).on_conflict_do_nothing(
            index_elements=["prefix", "year"]
        )
    )


def next_number(session: Session, prefix: str, on_date: date | None = None) -> str:
    """Allocate the next ``{prefix}-{year}-{nnnn}`` number inside the caller's transaction.

    The counter row is locked until the caller commits, so two transactions can
    never observe the same value. The first number of a year creates the row
    with an insert that ignores a concurrent insert of the same row, then locks
    whichever row won. Counters restart at 1 every calendar year.
    """
    year = (on_date or date.today()).year
    sequence = _lock_sequence(session, prefix, year)
    if sequence is None:
        _insert_counter_if_missing(session, prefix, year)
        sequence = _lock_sequence(session, prefix, year)
        if sequence is None:
            raise RuntimeError(f"number sequence {prefix}/{year} could not be created")

    sequence.last_value = sequence.last_value + 1
    session.flush()
    return f"{prefix}-{year}-{sequence.last_value:04d}"
