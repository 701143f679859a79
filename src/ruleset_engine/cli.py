"""Command-line interface for the rule set engine."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from ruleset_engine.config import configure_logging, get_settings
from ruleset_engine.database.connection import close_db, create_tables, get_db, init_db
from ruleset_engine.database.repository import SqlRuleRepository
from ruleset_engine.engine import RuleEngine
from ruleset_engine.rules.descriptors import RuleScope
from ruleset_engine.rules.errors import RuleEngineError

logger = logging.getLogger(__name__)


async def _init_db() -> int:
    await init_db()
    try:
        await create_tables()
    finally:
        await close_db()
    print("Database tables created.")
    return 0


async def _list_descriptors(scope: str) -> int:
    engine = RuleEngine()
    await init_db()
    try:
        async with get_db() as session:
            rules = engine.bind(SqlRuleRepository(session))
            descriptors = await rules.providers.get(scope).get_descriptors()
            for descriptor in descriptors:
                operators = ", ".join(op.value for op in descriptor.operators)
                print(f"{descriptor.name}\t{descriptor.display_name or ''}\t{operators}")
    finally:
        await close_db()
    return 0


async def _show_rule_set(rule_set_id: int, include_hidden: bool, language: str | None) -> int:
    engine = RuleEngine()
    await init_db()
    try:
        async with get_db() as session:
            rules = engine.bind(SqlRuleRepository(session))
            rule_set = await rules.service.repository.find_rule_set(rule_set_id)
            if rule_set is None:
                print(f"Rule set {rule_set_id} not found.", file=sys.stderr)
                return 1

            provider = rules.providers.get(rule_set.scope)
            group = await rules.service.create_expression_group(
                rule_set, provider, include_hidden
            )
            if group is None:
                print(f"Rule set {rule_set_id} is inactive.", file=sys.stderr)
                return 1

            await rules.service.apply_metadata(group, language)
            print(json.dumps(group.model_dump(mode="json"), indent=2, ensure_ascii=False))
    finally:
        await close_db()
    return 0


def _serve() -> int:
    import uvicorn

    from ruleset_engine.api import create_app

    settings = get_settings()
    uvicorn.run(create_app(), host=settings.host, port=settings.port)
    return 0


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    parser = argparse.ArgumentParser(
        description="Rule Set Engine - compile and evaluate stored rule sets"
    )
    parser.add_argument(
        "--version",
        action="version",
        version="%(prog)s 0.1.0",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init-db", help="Create database tables")

    descriptors_parser = subparsers.add_parser(
        "descriptors", help="List the condition kinds of a scope"
    )
    descriptors_parser.add_argument(
        "--scope",
        choices=[s.value for s in RuleScope],
        default=RuleScope.PRODUCT_ATTRIBUTE.value,
        help="Rule scope",
    )

    show_parser = subparsers.add_parser(
        "show", help="Print the compiled expression tree of a rule set as JSON"
    )
    show_parser.add_argument("rule_set_id", type=int, help="Rule set id")
    show_parser.add_argument(
        "--include-hidden",
        action="store_true",
        help="Also compile inactive rule sets",
    )
    show_parser.add_argument("--language", help="Language for display names")

    subparsers.add_parser("serve", help="Run the HTTP API")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    configure_logging()

    try:
        if args.command == "init-db":
            return asyncio.run(_init_db())
        if args.command == "descriptors":
            return asyncio.run(_list_descriptors(args.scope))
        if args.command == "show":
            return asyncio.run(
                _show_rule_set(args.rule_set_id, args.include_hidden, args.language)
            )
        if args.command == "serve":
            return _serve()
    except RuleEngineError as e:
        logger.error(f"{args.command} failed: {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
