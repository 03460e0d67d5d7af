from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002
from sqlalchemy.orm import Session, sessionmaker

from databroker.adapters.sqlalchemy import create_broker_engine, start_mappers
from databroker.adapters.sqlalchemy.migrations import upgrade_head
from databroker.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, shutdown, startup
from databroker.app import Broker, create_broker
from databroker.config import BrokerConfig, CatalogSettings
from databroker.domain.identity import IdentityScheme
from tests.helpers.catalog import COUNTRY_SCHEMA, TEST_SECRET

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("BROKER_SECRET", "test-secret")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from databroker.domain.model import Connector, Entity


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = create_broker_engine("sqlite+pysqlite:///:memory:")
    start_mappers()
    upgrade_head(engine=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_session(sqlite_engine: Engine) -> Iterator[Session]:
    session_factory = sessionmaker(bind=sqlite_engine, future=True)
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyUnitOfWork:
        return SqlAlchemyUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def identity() -> IdentityScheme:
    return IdentityScheme(TEST_SECRET)


@pytest.fixture
def catalog_settings() -> CatalogSettings:
    return CatalogSettings()


@pytest.fixture
def broker(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    catalog_settings: CatalogSettings,
) -> Broker:
    return create_broker(
        config=BrokerConfig(secret=TEST_SECRET, catalog=catalog_settings),
        unit_of_work_factory=sqlite_unit_of_work,
    )


@pytest.fixture
def country(broker: Broker) -> Entity:
    return broker.registry.add_entity(
        "country",
        "Country",
        description="Sovereign states",
        schema=COUNTRY_SCHEMA,
        timeseries={"gdp": {"unit": "USD", "interval": "year"}},
    )


@pytest.fixture
def wikipedia(broker: Broker, country: Entity) -> Connector:
    return broker.registry.add_connector(country.slug, "wikipedia")
