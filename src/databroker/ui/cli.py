# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, Any

from dotenv import load_dotenv

from databroker.app import create_broker
from databroker.config import ConfigurationError, configure_logging
from databroker.domain.errors import BrokerError

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import FrameType

    from databroker.app import Broker

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Contribute to and read from the data catalog")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    entity = subparsers.add_parser("entity", help="Entity type management")
    entity_sub = entity.add_subparsers(dest="entity_command", required=True)
    entity_add = entity_sub.add_parser("add", help="Register an entity type")
    entity_add.add_argument("slug", help="Entity type slug, e.g. country")
    entity_add.add_argument("--name", required=True, help="Human-readable name")
    entity_add.add_argument("--description", default="", help="Optional description")
    entity_add.add_argument(
        "--schema",
        help="JSON schema for the entity section (JSON text, @file or -)",
    )
    entity_add.add_argument(
        "--timeseries",
        help="Timeseries descriptors keyed by name (JSON text, @file or -)",
    )

    connector = subparsers.add_parser("connector", help="Connector management")
    connector_sub = connector.add_subparsers(dest="connector_command", required=True)
    connector_add = connector_sub.add_parser("add", help="Register a connector")
    connector_add.add_argument("entity", help="Entity type slug the connector contributes")
    connector_add.add_argument("slug", help="Connector slug, e.g. wikipedia")
    connector_live = connector_sub.add_parser("live", help="Publish or unpublish a connector")
    connector_live.add_argument("connector_id", help="Contribution id of the connector")
    connector_live.add_argument(
        "--off",
        action="store_true",
        help="Hide the connector's records from consumers again",
    )
    connector_remove = connector_sub.add_parser("remove", help="Remove a connector and its data")
    connector_remove.add_argument("connector_id", help="Contribution id of the connector")

    policy = subparsers.add_parser("policy", help="Policy management")
    policy_sub = policy.add_subparsers(dest="policy_command", required=True)
    policy_add = policy_sub.add_parser("add", help="Create or replace a policy")
    policy_add.add_argument("slug", help="Policy id")
    policy_add.add_argument("--segment", help="Segment filter (JSON text, @file or -)")
    policy_add.add_argument(
        "--mask",
        action="append",
        default=[],
        help="Field to hide, as <type>.<path> (repeatable)",
    )
    policy_add.add_argument(
        "--override",
        action="append",
        default=[],
        help="Connector id visible through this policy even when not live (repeatable)",
    )

    session = subparsers.add_parser("session", help="Contribution sessions")
    session_sub = session.add_subparsers(dest="session_command", required=True)
    session_open = session_sub.add_parser("open", help="Open a session")
    session_open.add_argument("connector_id", help="Contribution id of the connector")
    session_open.add_argument("mode", help="stream, accrue or replace")
    session_action = session_sub.add_parser("action", help="Submit a batch of records")
    session_action.add_argument("connector_id", help="Contribution id of the connector")
    session_action.add_argument("session_id", help="Id returned by session open")
    session_action.add_argument("action", help="upsert or delete")
    session_action.add_argument(
        "records",
        help="JSON array of records (JSON text, @file or - for stdin)",
    )
    session_close = session_sub.add_parser("close", help="Close a session")
    session_close.add_argument("connector_id", help="Contribution id of the connector")
    session_close.add_argument("session_id", help="Id returned by session open")
    session_close.add_argument(
        "--commit",
        default="true",
        help="true to apply buffered actions, false to roll back (default: %(default)s)",
    )

    catalog = subparsers.add_parser("catalog", help="Consumer reads")
    catalog_sub = catalog.add_subparsers(dest="catalog_command", required=True)
    catalog_types = catalog_sub.add_parser("types", help="List entity types with records")
    catalog_list = catalog_sub.add_parser("list", help="List instances of an entity type")
    catalog_list.add_argument("entity", help="Entity type slug")
    catalog_get = catalog_sub.add_parser("get", help="Show one instance")
    catalog_get.add_argument("entity", help="Entity type slug")
    catalog_get.add_argument("public_id", help="Public id of the instance")
    catalog_query = catalog_sub.add_parser("query", help="Filter instances with a query")
    catalog_query.add_argument("q", help="Filter document (JSON text, @file or -)")
    for command in (catalog_types, catalog_list, catalog_get, catalog_query):
        command.add_argument("--policy", help="Policy id to read through")
        command.add_argument(
            "--connector",
            action="append",
            default=[],
            help="Connector id to include even when not live (repeatable)",
        )
    for command in (catalog_list, catalog_query):
        command.add_argument("--offset", type=int, default=0, help="Records to skip")
        command.add_argument("--limit", type=int, help="Maximum records to return")

    return parser.parse_args(list(argv))


def _read_text(value: str) -> str:
    if value == "-":
        return sys.stdin.read()
    if value.startswith("@"):
        try:
            return Path(value[1:]).read_text(encoding="utf-8")
        except OSError as exc:
            raise ValueError(f"Cannot read {value[1:]}: {exc.strerror}") from exc
    return value


def _json_argument(value: str | None, *, name: str) -> Any:
    if value is None:
        return None
    try:
        return json.loads(_read_text(value))
    except json.JSONDecodeError as exc:
        raise ValueError(f"{name} is not valid JSON: {exc.msg}") from exc


def _object_argument(value: str | None, *, name: str) -> dict[str, Any] | None:
    loaded = _json_argument(value, name=name)
    if loaded is not None and not isinstance(loaded, dict):
        raise ValueError(f"{name} must be a JSON object")
    return loaded


def _emit(value: object) -> None:
    print(json.dumps(value, indent=2, ensure_ascii=False))


def _run(args: argparse.Namespace, broker: Broker) -> object:  # noqa: C901, PLR0911
    match args.command, getattr(args, f"{args.command}_command", None):
        case "entity", "add":
            entity = broker.registry.add_entity(
                args.slug,
                args.name,
                description=args.description,
                schema=_object_argument(args.schema, name="--schema"),
                timeseries=_object_argument(args.timeseries, name="--timeseries"),
            )
            return {"slug": entity.slug, "name": entity.name}
        case "connector", "add":
            connector = broker.registry.add_connector(args.entity, args.slug)
            return {"id": connector.id, "slug": connector.slug, "entity": connector.entity_slug}
        case "connector", "live":
            connector = broker.registry.set_live(args.connector_id, live=not args.off)
            return {"id": connector.id, "live": connector.is_live}
        case "connector", "remove":
            broker.registry.remove_connector(args.connector_id)
            return {"id": args.connector_id, "removed": True}
        case "policy", "add":
            policy = broker.registry.add_policy(
                args.slug,
                segment_query=_object_argument(args.segment, name="--segment"),
                field_masks=args.mask,
                connector_override=args.override,
            )
            return {"slug": policy.slug}
        case "session", "open":
            return {"session": broker.sessions.open(args.connector_id, args.mode)}
        case "session", "action":
            records = _json_argument(args.records, name="records")
            return broker.sessions.action(args.connector_id, args.session_id, args.action, records)
        case "session", "close":
            broker.sessions.close(args.connector_id, args.session_id, args.commit)
            return {"session": args.session_id, "closed": True}
        case "catalog", "types":
            return broker.catalog.types(args.policy, connectors=args.connector)
        case "catalog", "list":
            return broker.catalog.list(
                args.entity,
                args.policy,
                connectors=args.connector,
                offset=args.offset,
                limit=args.limit,
            )
        case "catalog", "get":
            return broker.catalog.find(
                args.entity, args.public_id, args.policy, connectors=args.connector
            )
        case "catalog", "query":
            return broker.catalog.query(
                _read_text(args.q),
                args.policy,
                connectors=args.connector,
                offset=args.offset,
                limit=args.limit,
            )
        case command, subcommand:
            raise ValueError(f"Unsupported command: {command} {subcommand}")


def main(
    argv: Sequence[str] | None = None,
    *,
    broker_factory: Callable[[], Broker] = create_broker,
) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.WARNING)

    try:
        result = _run(parsed_args, broker_factory())
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(2)
    except BrokerError as exc:
        print(
            json.dumps(
                {
                    "status": int(exc.status),
                    "message": exc.message,
                    "details": [
                        {"name": detail.name, "reason": detail.reason, "index": detail.index}
                        for detail in exc.details
                    ],
                },
                ensure_ascii=False,
            ),
            file=sys.stderr,
        )
        sys.exit(1)
    except ConfigurationError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        sys.exit(1)
    _emit(result)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    """Console script entry point."""
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
