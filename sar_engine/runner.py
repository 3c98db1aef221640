"""CLI Runner — evaluate case files from the command line.

Usage:
    # Single case already in CaseData shape:
    python -m sar_engine.runner --case data/samples/case_high_risk_usd.json

    # Upload payload with a "customers" array, scored under the INR profile:
    python -m sar_engine.runner --case data/samples/upload_india_batch.json --profile india-INR

    # Emit the RuleEngineOutput documents as JSON:
    python -m sar_engine.runner --case data/samples/case_structuring_inr.json --profile india-INR --json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from sar_engine.audit import LoggingAuditSink, evaluate_with_audit
from sar_engine.config import get_settings
from sar_engine.core.errors import ConfigurationError, MalformedInputError
from sar_engine.core.models import RuleEngineOutput
from sar_engine.core.money import format_amount
from sar_engine.core.profiles import RiskProfile, get_profile
from sar_engine.intake import ScreeningResult, case_from_dict, screen_batch

EXIT_MISSING_FILE = 1
EXIT_BAD_INPUT = 2


def _setup_logging(verbose: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(name)-30s | %(levelname)-7s | %(message)s",
        datefmt="%H:%M:%S",
    )


def _load_json(path: str) -> dict | None:
    p = Path(path)
    if not p.exists():
        print(f"[ERROR] Case file not found: {p}")
        return None
    with open(p, "r", encoding="utf-8") as f:
        return json.load(f)


def run_file(path: str, profile: RiskProfile) -> list[ScreeningResult]:
    """Evaluate a case file: an upload payload or a single CaseData document."""
    settings = get_settings()
    sink = LoggingAuditSink()
    data = _load_json(path)
    if data is None:
        raise FileNotFoundError(path)

    if "customers" in data:
        return screen_batch(data, profile, sink, settings)

    case = case_from_dict(data, source=f"Case file {Path(path).name}")
    output = evaluate_with_audit(case, profile, sink)
    return [ScreeningResult(
        case=case,
        output=output,
        requires_sar=output.aggregated_risk_score >= settings.sar_score_threshold,
    )]


def _print_result(result: ScreeningResult, profile: RiskProfile) -> None:
    """Pretty-print one evaluation."""
    out: RuleEngineOutput = result.output
    metrics = out.calculated_metrics

    print("\n" + "=" * 70)
    print(f"  CASE {out.case_id}  ({out.rule_engine_version})")
    print("=" * 70)

    customer = result.case.customer
    total = format_amount(
        metrics["total_transaction_value"], metrics["reference_currency"], profile.amount_grouping,
    )
    print(f"\nCustomer: {customer.name} ({customer.id}), {customer.occupation or 'occupation unknown'}")
    print(f"Activity: {metrics['transaction_count']} transactions totaling {total}")

    if out.triggered_rules:
        print(f"\nTriggered Rules ({len(out.triggered_rules)}):")
        for rule in out.triggered_rules:
            print(f"   • {rule}")
    else:
        print("\nNo rules triggered.")

    if out.typology_tags:
        print(f"\nTypologies: {', '.join(out.typology_tags)}")

    if out.score_breakdown:
        parts = ", ".join(f"{k}={v}" for k, v in out.score_breakdown.items())
        print(f"\nScore breakdown: {parts} (raw {metrics['raw_risk_score']})")

    print(f"\nRisk Score: {out.aggregated_risk_score}/100")
    print(f"Classification: {out.final_classification}")
    print(f"SAR drafting: {'required' if result.requires_sar else 'not required'}")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="SAR Risk Rule Engine Runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m sar_engine.runner --case data/samples/case_high_risk_usd.json
  python -m sar_engine.runner --case data/samples/upload_india_batch.json --profile india-INR
  python -m sar_engine.runner --case data/samples/case_structuring_inr.json --profile india-INR --json
        """,
    )
    parser.add_argument(
        "--case",
        required=True,
        help="Path to a JSON case file or upload payload",
    )
    parser.add_argument(
        "--profile",
        help="Risk profile name (default: SAR_DEFAULT_PROFILE or generic-USD)",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print RuleEngineOutput documents as JSON instead of a report",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--output",
        help="Save RuleEngineOutput documents to this file path",
    )

    args = parser.parse_args(argv)
    _setup_logging(args.verbose)

    try:
        profile = get_profile(args.profile)
        results = run_file(args.case, profile)
    except FileNotFoundError:
        return EXIT_MISSING_FILE
    except (MalformedInputError, ConfigurationError, json.JSONDecodeError) as exc:
        print(f"[ERROR] {exc}")
        return EXIT_BAD_INPUT

    documents = [r.output.model_dump(mode="json") for r in results]
    if args.json:
        print(json.dumps(documents, indent=2))
    else:
        for r in results:
            _print_result(r, profile)
        print()

    if args.output:
        p = Path(args.output)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(documents, indent=2), encoding="utf-8")
        # keep stdout parseable in --json mode
        print(f"[OK] Results saved to {p}", file=sys.stderr if args.json else sys.stdout)

    if not args.json:
        print("[DONE]")
    return 0


if __name__ == "__main__":
    sys.exit(main())
