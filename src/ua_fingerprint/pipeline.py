#!/usr/bin/env python3
"""DuckDB batch pipeline: annotate a request log with client fingerprints.

Input is a TSV with a header row holding at least a User-Agent column (and
usually a client address column). The parser is loaded once, the derivations
are registered as DuckDB UDFs and the annotated rows are written back as TSV
with ``fingerprint``, ``hash``, ``browser``, ``os`` and ``device`` columns.
"""

from __future__ import annotations

import argparse
import sys
import time
from dataclasses import replace
from functools import lru_cache
from pathlib import Path
from typing import Callable

import duckdb
from duckdb.sqltypes import VARCHAR
from loguru import logger

from .config import Settings, configure_logging
from .utils.hashing import FamilyHashPolicy
from .utils.parser import AgentParser
from .utils.progress import RowProgress
from .utils.user_agent import AttributeRecord, build

REQUESTS_TABLE = "requests"
ANNOTATED_TABLE = "annotated_requests"


def quote_ident(identifier: str) -> str:
    """DuckDB identifier escaping."""
    return '"' + identifier.replace('"', '""') + '"'


def register_functions(
    conn: duckdb.DuckDBPyConnection,
    parser: AgentParser,
    policy: FamilyHashPolicy,
    cache_size: int,
    on_row: Callable[[], None] | None = None,
) -> None:
    """Register ``ua_*(user_agent, ip)`` scalar functions on the connection.

    All functions share one memoized :func:`build`, so each distinct
    (agent, address) pair is parsed once. ``on_row`` is called once per row
    evaluated by ``ua_fingerprint``.
    """

    @lru_cache(maxsize=cache_size)
    def identify(agent: str | None, address: str | None) -> AttributeRecord:
        return build(agent, address, parser=parser, policy=policy)

    def row_fingerprint(agent: str | None, address: str | None) -> str | None:
        if on_row is not None:
            on_row()
        return identify(agent, address).fingerprint

    # Evaluated for every row, duplicates included.
    conn.create_function(
        "ua_fingerprint",
        row_fingerprint,
        [VARCHAR, VARCHAR],
        VARCHAR,
        null_handling="special",
        side_effects=True,
    )

    attributes = {
        "ua_family_hash": lambda agent, address: identify(agent, address).family_hash,
        "ua_browser": lambda agent, address: identify(agent, address).product.name,
        "ua_os": lambda agent, address: identify(agent, address).os.name,
        "ua_device": lambda agent, address: identify(agent, address).device.name,
    }
    for name, function in attributes.items():
        conn.create_function(
            name, function, [VARCHAR, VARCHAR], VARCHAR, null_handling="special"
        )


def register_requests(
    conn: duckdb.DuckDBPyConnection, table_name: str, input_path: Path
) -> list[str]:
    """Load the request TSV into a table and return its column names.

    Every column is read as text; empty cells are NULL.
    """
    if not input_path.is_file():
        raise FileNotFoundError(f"Input file not found: {input_path}")
    logger.info("registering requests table={} file={}", table_name, input_path)
    relation = conn.read_csv(
        input_path.as_posix(), header=True, delimiter="\t", all_varchar=True
    )
    relation.create(table_name)
    return list(relation.columns)


def count_rows(conn: duckdb.DuckDBPyConnection, table_name: str) -> int:
    return conn.execute(f"SELECT count(*) FROM {table_name}").fetchone()[0]


def build_annotated_table(
    conn: duckdb.DuckDBPyConnection,
    *,
    table_name: str,
    requests_table: str,
    agent_column: str,
    address_column: str | None,
) -> None:
    logger.info("building annotated table {}", table_name)
    agent = quote_ident(agent_column)
    address = quote_ident(address_column) if address_column else "NULL::VARCHAR"
    conn.execute(
        f"""
        CREATE OR REPLACE TABLE {table_name} AS
        SELECT
            *,
            ua_fingerprint({agent}, {address}) AS fingerprint,
            ua_family_hash({agent}, {address}) AS hash,
            ua_browser({agent}, {address}) AS browser,
            ua_os({agent}, {address}) AS os,
            ua_device({agent}, {address}) AS device
        FROM {requests_table};
        """
    )


def export_table(
    conn: duckdb.DuckDBPyConnection, table_name: str, output_path: Path
) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info("writing TSV -> {}", output_path)
    conn.sql(f"SELECT * FROM {table_name}").write_csv(
        str(output_path), sep="\t", header=True
    )


def summarize(conn: duckdb.DuckDBPyConnection, table_name: str) -> tuple[int, int, int]:
    """Row count, distinct fingerprints and distinct family hashes."""
    rows, fingerprints, families = conn.execute(
        f"SELECT count(*), count(DISTINCT fingerprint), count(DISTINCT hash) FROM {table_name}"
    ).fetchone()
    return rows, fingerprints, families


def run_pipeline(settings: Settings, parser: AgentParser | None = None) -> Path:
    """Annotate ``settings.input_path`` and write ``settings.output_path``.

    Parameters
    ----------
    settings : Settings
        Pipeline settings.
    parser : AgentParser | None, optional
        Parser handle; loaded from ``settings.rules_path`` when omitted.

    Returns
    -------
    Path
        The written TSV.

    Raises
    ------
    FileNotFoundError
        If the input file does not exist.
    ValueError
        If the input lacks the User-Agent column.
    ParserInitError
        If the rule file cannot be loaded.
    """
    started = time.perf_counter()
    with RowProgress(settings.progress, verbose=settings.verbose) as progress:
        if parser is None:
            parser = AgentParser.load(settings.rules_path)
        logger.info("User-Agent rules loaded ({})", parser.source)

        conn = duckdb.connect(database=":memory:")
        try:
            if settings.threads:
                conn.execute(f"PRAGMA threads={settings.threads}")

            columns = register_requests(conn, REQUESTS_TABLE, settings.input_path)
            if settings.agent_column not in columns:
                raise ValueError(
                    f"Column {settings.agent_column!r} not found in {settings.input_path} "
                    f"(columns: {', '.join(columns)})"
                )
            address_column: str | None = settings.address_column
            if address_column not in columns:
                logger.warning(
                    "address column {} not found, network prefix disabled",
                    address_column,
                )
                address_column = None

            progress.start_rows(count_rows(conn, REQUESTS_TABLE))
            register_functions(
                conn,
                parser,
                settings.family_hash_policy,
                settings.cache_size,
                on_row=progress.advance,
            )
            build_annotated_table(
                conn,
                table_name=ANNOTATED_TABLE,
                requests_table=REQUESTS_TABLE,
                agent_column=settings.agent_column,
                address_column=address_column,
            )

            export_table(conn, ANNOTATED_TABLE, settings.output_path)
            rows, fingerprints, families = summarize(conn, ANNOTATED_TABLE)
        finally:
            conn.close()

    logger.success(
        "{} requests, {} fingerprints, {} families ({} policy, {:.1f}s)",
        rows,
        fingerprints,
        families,
        settings.family_hash_policy.value,
        time.perf_counter() - started,
    )
    return settings.output_path


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "input_path", type=Path, nargs="?", help="Request TSV (default: UA_INPUT_FILE)"
    )
    parser.add_argument(
        "-o", "--output", type=Path, help="Annotated TSV (default: UA_OUTPUT_FILE)"
    )
    parser.add_argument(
        "--policy",
        choices=[policy.value for policy in FamilyHashPolicy],
        help="Family hash policy (default: UA_FAMILY_HASH_POLICY or canonical)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)
    settings = Settings.from_env()
    overrides = {}
    if args.input_path is not None:
        overrides["input_path"] = args.input_path
    if args.output is not None:
        overrides["output_path"] = args.output
    if args.policy is not None:
        overrides["family_hash_policy"] = FamilyHashPolicy(args.policy)
    settings = replace(settings, **overrides)

    configure_logging(settings.verbose)
    try:
        run_pipeline(settings)
    except KeyboardInterrupt:
        logger.warning("Interrupted by user")
        sys.exit(130)
    except Exception as exc:  # pylint: disable=broad-except
        logger.exception("Pipeline failed: {}", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
