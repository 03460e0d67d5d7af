"""SQLAlchemy-backed unit of work for the broker repositories."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from databroker.adapters.sqlalchemy.engine import create_broker_engine, install
from databroker.adapters.sqlalchemy.mappings import start_mappers
from databroker.adapters.sqlalchemy.migrations import upgrade_head
from databroker.adapters.sqlalchemy.repositories import (
    SqlAlchemyCatalogRepository,
    SqlAlchemyConnectorRepository,
    SqlAlchemyEntityRepository,
    SqlAlchemyOperationLogRepository,
    SqlAlchemyPolicyRepository,
)
from databroker.domain.errors import InternalError
from databroker.domain.ports.unit_of_work import BrokerRepositories, RepositoryCollection

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)


class StartupError(RuntimeError):
    """Raised when a SQLAlchemy unit of work is used before initialisation."""


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
                "SQLAlchemy adapter not initialised. Call databroker.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
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
    """Initialise the SQLAlchemy engine, schema, and session factory."""

    if _STATE.engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    if engine is not None:
        install(engine)
        resolved_engine = engine
    else:
        resolved_engine = create_broker_engine(database_uri)
    start_mappers()
    upgrade_head(engine=resolved_engine)

    _STATE.engine = resolved_engine
    log.debug("SQLAlchemy adapter started on %s", resolved_engine.url)


def configured_engine() -> Engine | None:
    """Return the engine currently managed by the adapter (if any)."""

    return _STATE.engine


def is_started() -> bool:
    """Return whether the adapter has been initialised."""

    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None


class BaseSqlAlchemyUnitOfWork[TRepositories: RepositoryCollection](ABC):
    """Generic SQLAlchemy unit of work with pluggable repository collections.

    Database failures surface as :class:`InternalError`; the transaction is
    rolled back first, so no partial state is ever committed.
    """

    def __init__(self) -> None:
        self.session_factory: sessionmaker[Session] = _STATE.session_factory
        self._session: Session | None = None

    @abstractmethod
    def _build_repositories(self, session: Session) -> TRepositories: ...

    def __enter__(self) -> BaseSqlAlchemyUnitOfWork[TRepositories]:
        self.session = self.session_factory()
        self._repositories = self._build_repositories(self.session)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        try:
            if exc_type is not None:
                self.rollback()
            self.session.close()
        finally:
            self.session = None
        if isinstance(exc_value, SQLAlchemyError):
            log.exception("Database operation failed", exc_info=exc_value)
            raise InternalError("The database operation failed") from exc_value
        return False

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise InternalError("The database transaction could not be committed") from exc

    def rollback(self) -> None:
        self.session.rollback()

    @property
    def repositories(self) -> TRepositories:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @session.setter
    def session(self, session: Session | None) -> None:
        if self._session is not None and session is not None:
            raise StartupError("Unit of work session already initialised")
        self._session = session


class SqlAlchemyUnitOfWork(BaseSqlAlchemyUnitOfWork[BrokerRepositories]):
    """Unit of work over every broker repository, one transaction per use."""

    def _build_repositories(self, session: Session) -> BrokerRepositories:
        return BrokerRepositories(
            entities=SqlAlchemyEntityRepository(session),
            connectors=SqlAlchemyConnectorRepository(session),
            policies=SqlAlchemyPolicyRepository(session),
            operations=SqlAlchemyOperationLogRepository(session),
            catalog=SqlAlchemyCatalogRepository(session),
        )


if TYPE_CHECKING:
    from databroker.domain.ports.unit_of_work import BrokerUnitOfWork

    _uow_check: BrokerUnitOfWork = SqlAlchemyUnitOfWork()
