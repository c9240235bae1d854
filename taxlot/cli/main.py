#!/usr/bin/env python3
"""
Tax lot CLI - Apply buy and sell operations and print the open lots.

Usage:
    taxlot fifo < operations.csv
    python -m taxlot hifo < operations.csv

Each input line is ``date,action,price,quantity``; each output line is
``lot_id,date,price,quantity`` in the order the lots would be sold.
"""

import argparse
import logging
import sys
from typing import Iterable, Optional, TextIO

import yaml

from ..config.validator import ConfigValidationError, ConfigValidator, load_settings
from ..lots import (
    Action,
    LotCollection,
    ParseError,
    SelectionPolicy,
    TaxLotError,
    read_operations,
    write_lots,
)
from ..utils.logging import LogContext, log_buy, log_rejection, log_sell, setup_logging

logger = logging.getLogger(__name__)

EXIT_SUCCESS = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def process_operations(policy: SelectionPolicy, lines: Iterable[str]) -> LotCollection:
    """
    Apply every operation in `lines` to a new collection.

    Args:
        policy: Selection policy for the collection
        lines: Input lines, ``date,action,price,quantity``

    Returns:
        The collection after all operations were applied

    Raises:
        TaxLotError: On the first line that fails to parse or apply,
            with `line_number` set
    """
    collection = LotCollection(policy)
    count = 0

    with LogContext(policy=policy.value):
        for line_number, operation in read_operations(lines):
            with LogContext(line_number=line_number):
                merged = operation.action == Action.BUY and operation.date in collection
                try:
                    result = collection.apply(operation)
                except TaxLotError as e:
                    e.line_number = line_number
                    raise

                if operation.action == Action.BUY:
                    log_buy(
                        logger,
                        result.lot_id,
                        result.date,
                        result.price,
                        result.quantity,
                        merged=merged,
                    )
                else:
                    log_sell(
                        logger,
                        result.date,
                        result.sale_price,
                        result.quantity,
                        lots_consumed=len(result.disposals),
                        gain_loss=result.gain_loss,
                    )
            count += 1

        logger.info(
            f"Processed {count} operations: {len(collection)} lots open, "
            f"{collection.total_quantity} held"
        )

    return collection


def run(
    policy_name: str,
    input_stream: Iterable[str],
    output_stream: TextIO,
    settings: Optional[dict] = None,
) -> int:
    """
    Run the whole batch: select the policy, apply all input, write the lots.

    Nothing is written to `output_stream` unless every operation succeeds.

    Args:
        policy_name: "fifo" or "hifo"
        input_stream: Input lines
        output_stream: Destination for the open lots
        settings: Validated settings; defaults when omitted

    Returns:
        Process exit code
    """
    if settings is None:
        settings = ConfigValidator().apply_defaults({})
    output_settings = settings["output"]

    try:
        policy = SelectionPolicy.from_name(policy_name)
        collection = process_operations(policy, input_stream)
    except TaxLotError as e:
        message = str(e)
        if e.line_number is not None and not isinstance(e, ParseError):
            message = f"line {e.line_number}: {message}"
        log_rejection(logger, type(e).__name__, message, line_number=e.line_number)
        return EXIT_FAILURE

    try:
        write_lots(
            collection.remaining_lots(),
            output_stream,
            price_places=output_settings["price_places"],
            quantity_places=output_settings["quantity_places"],
            include_lot_id=output_settings["include_lot_id"],
        )
        output_stream.flush()
    except OSError as e:
        logger.error(f"Failed to write output: {e}")
        return EXIT_FAILURE

    return EXIT_SUCCESS


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the taxlot CLI."""
    parser = argparse.ArgumentParser(
        prog="taxlot",
        description="Track tax lots from buy/sell operations read on stdin",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Oldest lots are sold first
  echo "2021-01-01,buy,10000.00,1.0" | taxlot fifo

  # Highest cost lots are sold first
  taxlot hifo < operations.csv

Settings are read from the YAML file named by TAXLOT_CONFIG, if set.
        """,
    )
    parser.add_argument(
        "policy",
        help="Tax lot selection policy: fifo or hifo",
    )

    args = parser.parse_args(argv)

    try:
        settings = load_settings()
    except (ConfigValidationError, FileNotFoundError, yaml.YAMLError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(EXIT_FAILURE)

    log_settings = settings["logging"]
    setup_logging(
        level=log_settings["level"],
        log_file=log_settings["file"],
        json_format=log_settings["json_format"],
    )

    try:
        exit_code = run(args.policy, sys.stdin, sys.stdout, settings)
    except KeyboardInterrupt:
        print("\nCancelled by user", file=sys.stderr)
        sys.exit(EXIT_INTERRUPTED)

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
