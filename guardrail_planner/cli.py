"""Command-line guardrail calculator.

Reads a scenario as JSON from ``--input`` or stdin, runs the guardrail
calculation and prints ``{"results": ..., "enhancedResults": ...}`` to stdout.
Validation and runtime errors are written to stderr as ``{"error": ..., "field": ...}``
with exit status 1.

    guardrail-calc --input params.json --pretty
    cat params.json | guardrail-calc --enhanced --seed 7
    guardrail-calc --schema input
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional, Sequence

from .calculators.config import load_config
from .calculators.errors import GuardrailError, ScenarioValidationError, StorageError
from .calculators.guardrails import GuardrailEngine
from .calculators.scenario import parse_scenario
from .schema import SCHEMAS
from .storage import ScenarioStore

logger = logging.getLogger("guardrail_planner")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="guardrail-calc",
        description="Risk-based guardrail withdrawal calculator.",
    )
    parser.add_argument("-i", "--input", help="Read JSON input from a file (default: stdin)")
    parser.add_argument("-e", "--enhanced", action="store_true",
                        help="Also run the mean-reverting return model")
    parser.add_argument("-p", "--pretty", action="store_true", help="Pretty-print JSON output")
    parser.add_argument("-s", "--schema", choices=sorted(SCHEMAS), type=str.lower,
                        help="Print the input or output JSON Schema and exit")
    parser.add_argument("-c", "--config", help="JSON file with configuration overrides")
    parser.add_argument("--seed", type=int, default=None, help="Seed for reproducible sampling")
    parser.add_argument("--save", metavar="NAME", help="Save the scenario and result under NAME")
    parser.add_argument("--store", metavar="DIR", default=None,
                        help="Directory for saved scenarios (default: ~/.guardrail_planner)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging on stderr")
    return parser


def _fail(message: str, field: Optional[str] = None) -> int:
    payload = {"error": message}
    if field is not None:
        payload["field"] = field
    sys.stderr.write(json.dumps(payload) + "\n")
    return 1


def _read_input(path: Optional[str]) -> str:
    if path:
        with open(path, "r", encoding="utf-8") as f:
            return f.read()
    if sys.stdin.isatty():
        raise OSError("No input. Provide --input <file> or pipe JSON to stdin.")
    return sys.stdin.read()


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    if args.schema:
        sys.stdout.write(json.dumps(SCHEMAS[args.schema](), indent=2) + "\n")
        return 0

    try:
        raw = _read_input(args.input)
    except OSError as exc:
        return _fail(f"Error reading input: {exc}")
    try:
        params = json.loads(raw)
    except json.JSONDecodeError as exc:
        return _fail(f"Invalid JSON input: {exc}")

    try:
        config = load_config(args.config)
        scenario = parse_scenario(params, config)
        engine = GuardrailEngine(config, seed=args.seed)
        report = engine.calculate(scenario)
        enhanced = None
        if args.enhanced or scenario.enhanced_mc_enabled:
            enhanced = engine.calculate_enhanced(scenario)
    except ScenarioValidationError as exc:
        return _fail(str(exc), exc.field)
    except GuardrailError as exc:
        return _fail(str(exc))
    except Exception as exc:
        logger.debug("calculation failed", exc_info=True)
        return _fail(f"Calculation failed: {exc}")

    results = report.to_dict()
    output = {"results": results, "enhancedResults": enhanced.to_dict() if enhanced else None}
    sys.stdout.write(json.dumps(output, indent=2 if args.pretty else None) + "\n")

    if args.save:
        try:
            store = ScenarioStore(args.store)
            store.save_scenario(args.save, params)
            store.record_calculation(args.save, results)
        except StorageError as exc:
            logger.error("result computed but not saved: %s", exc)
    return 0


if __name__ == "__main__":
    sys.exit(main())
