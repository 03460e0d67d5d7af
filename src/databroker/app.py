"""Application wiring: adapters, configuration and domain services."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from databroker.adapters.policy_cache import MemoryPolicyCache
from databroker.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from databroker.adapters.validation import JsonSchemaRecordValidator
from databroker.config import get_broker_config
from databroker.domain.consumer import CatalogReader
from databroker.domain.identity import IdentityScheme
from databroker.domain.policies import CachedPolicyProvider
from databroker.domain.registry import Registry
from databroker.domain.session import SessionManager

if TYPE_CHECKING:
    from databroker.config import BrokerConfig
    from databroker.domain.ports.collaborators import PolicyCache, RecordValidator
    from databroker.domain.ports.unit_of_work import BrokerUnitOfWork

UnitOfWorkFactory = Callable[[], "BrokerUnitOfWork"]

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Broker:
    """The services one broker process exposes."""

    registry: Registry
    sessions: SessionManager
    catalog: CatalogReader
    policies: CachedPolicyProvider


def create_broker(
    *,
    config: BrokerConfig | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    validator: RecordValidator | None = None,
    cache: PolicyCache | None = None,
) -> Broker:
    """Build the broker services, starting the database adapter when needed."""

    effective_config = config or get_broker_config()
    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemyUnitOfWork

    identity = IdentityScheme(effective_config.secret)
    policies = CachedPolicyProvider(
        unit_of_work_factory=unit_of_work_factory,
        cache=cache if cache is not None else MemoryPolicyCache(),
    )
    log.debug(
        "Creating broker: page_size=%s, max_page_size=%s, max_override_connectors=%s",
        effective_config.catalog.page_size,
        effective_config.catalog.max_page_size,
        effective_config.catalog.max_override_connectors,
    )
    return Broker(
        registry=Registry(
            unit_of_work_factory=unit_of_work_factory,
            identity=identity,
            policies=policies,
        ),
        sessions=SessionManager(
            unit_of_work_factory=unit_of_work_factory,
            identity=identity,
            validator=validator or JsonSchemaRecordValidator(),
        ),
        catalog=CatalogReader(
            unit_of_work_factory=unit_of_work_factory,
            policies=policies,
            settings=effective_config.catalog,
        ),
        policies=policies,
    )
