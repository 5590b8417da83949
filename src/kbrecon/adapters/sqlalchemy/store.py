"""SQLAlchemy-backed reconciliation store."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from pydantic import TypeAdapter
from sqlalchemy import create_engine, insert, select, update
from sqlalchemy.orm import Session, sessionmaker

from kbrecon.config import get_storage_config
from kbrecon.domain.model import CellState
from kbrecon.domain.reconciliation.store import UnknownCellError, apply_transition

from .mappings import cell_state_table, create_all_tables

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine

    from kbrecon.domain.model import JobKey, ReconciliationJob

log = logging.getLogger(__name__)

_CELL_STATE_ADAPTER = TypeAdapter(CellState)


class StartupError(RuntimeError):
    """Raised when the SQLAlchemy store is used before initialisation."""


@dataclass(slots=True)
class _AdapterState:
    _engine: Engine | None = None
    _session_factory: sessionmaker[Session] | None = None

    @property
    def engine(self) -> Engine | None:
        return self._engine

    @engine.setter
    def engine(self, value: Engine | None) -> None:
        self._session_factory = None
        self._engine = value

    @property
    def session_factory(self) -> sessionmaker[Session]:
        if self._engine is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call kbrecon.adapters.sqlalchemy."
                "store.startup() before creating a store."
            )
        if self._session_factory is None:
            self._session_factory = sessionmaker(bind=self._engine, expire_on_commit=False)
        return self._session_factory


_STATE = _AdapterState()


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Initialise the engine, create the ledger table and the session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )
    if _STATE.engine is not None:
        _STATE.engine.dispose()

    resolved_engine = engine or create_engine(database_uri or get_storage_config().cell_store_uri())
    create_all_tables(resolved_engine)
    _STATE.engine = resolved_engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


def dump_state(state: CellState) -> str:
    return _CELL_STATE_ADAPTER.dump_json(state).decode("utf-8")


def load_state(payload: str) -> CellState:
    return _CELL_STATE_ADAPTER.validate_json(payload)


class SqlAlchemyReconciliationStore:
    """Cell ledger persisted as one JSON payload row per cell key."""

    def __init__(self, session_factory: sessionmaker[Session] | None = None) -> None:
        self._session_factory = session_factory or _STATE.session_factory

    @classmethod
    def from_engine(cls, engine: Engine) -> SqlAlchemyReconciliationStore:
        create_all_tables(engine)
        return cls(sessionmaker(bind=engine, expire_on_commit=False))

    def register(self, job: ReconciliationJob) -> CellState:
        with self._session_factory.begin() as session:
            existing = self._load(session, job.key)
            if existing is not None:
                return existing
            state = CellState()
            item_id, property_id, value_index = job.key
            session.execute(
                insert(cell_state_table).values(
                    item_id=item_id,
                    property_id=property_id,
                    value_index=value_index,
                    status=state.status.value,
                    payload=dump_state(state),
                    updated_at=datetime.now(UTC),
                )
            )
            return state

    def get(self, key: JobKey) -> CellState:
        with self._session_factory() as session:
            state = self._load(session, key)
        if state is None:
            raise UnknownCellError(key)
        return state

    def transition(self, key: JobKey, new_state: CellState) -> CellState:
        with self._session_factory.begin() as session:
            current = self._load(session, key)
            if current is None:
                raise UnknownCellError(key)
            stored = apply_transition(key, current, new_state)
            if stored is current:
                return current
            item_id, property_id, value_index = key
            session.execute(
                update(cell_state_table)
                .where(
                    cell_state_table.c.item_id == item_id,
                    cell_state_table.c.property_id == property_id,
                    cell_state_table.c.value_index == value_index,
                )
                .values(
                    status=stored.status.value,
                    payload=dump_state(stored),
                    updated_at=datetime.now(UTC),
                )
            )
        log.debug("%s -> %s", key, stored.status)
        return stored

    def items(self) -> Iterator[tuple[JobKey, CellState]]:
        with self._session_factory() as session:
            rows = session.execute(
                select(
                    cell_state_table.c.item_id,
                    cell_state_table.c.property_id,
                    cell_state_table.c.value_index,
                    cell_state_table.c.payload,
                ).order_by(
                    cell_state_table.c.item_id,
                    cell_state_table.c.property_id,
                    cell_state_table.c.value_index,
                )
            ).all()
        for item_id, property_id, value_index, payload in rows:
            yield (item_id, property_id, value_index), load_state(payload)

    @staticmethod
    def _load(session: Session, key: JobKey) -> CellState | None:
        item_id, property_id, value_index = key
        payload = session.execute(
            select(cell_state_table.c.payload).where(
                cell_state_table.c.item_id == item_id,
                cell_state_table.c.property_id == property_id,
                cell_state_table.c.value_index == value_index,
            )
        ).scalar_one_or_none()
        return load_state(payload) if payload is not None else None
