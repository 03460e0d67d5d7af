"""Broker-level settings: identity secret, paging and visibility limits."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_int_env_var, require_env_vars
from .errors import ConfigurationError

DEFAULT_PAGE_SIZE = 50
MAX_PAGE_SIZE = 250
MAX_OVERRIDE_CONNECTORS = 16


@dataclass(frozen=True, slots=True)
class CatalogSettings:
    page_size: int = DEFAULT_PAGE_SIZE
    max_page_size: int = MAX_PAGE_SIZE
    max_override_connectors: int = MAX_OVERRIDE_CONNECTORS

    def __post_init__(self) -> None:
        if self.page_size > self.max_page_size:
            raise ConfigurationError(
                f"Page size {self.page_size} exceeds the maximum page size {self.max_page_size}"
            )


@dataclass(frozen=True, slots=True)
class BrokerConfig:
    """Holds the shared identity secret and catalog read limits."""

    secret: str
    catalog: CatalogSettings


def get_catalog_settings() -> CatalogSettings:
    return CatalogSettings(
        page_size=optional_int_env_var("DATABROKER_PAGE_SIZE", DEFAULT_PAGE_SIZE),
        max_page_size=optional_int_env_var("DATABROKER_MAX_PAGE_SIZE", MAX_PAGE_SIZE),
        max_override_connectors=optional_int_env_var(
            "DATABROKER_MAX_OVERRIDE_CONNECTORS", MAX_OVERRIDE_CONNECTORS, minimum=0
        ),
    )


def get_broker_config() -> BrokerConfig:
    values = require_env_vars(("BROKER_SECRET",))
    return BrokerConfig(secret=values["BROKER_SECRET"], catalog=get_catalog_settings())
