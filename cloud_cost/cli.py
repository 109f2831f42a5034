"""
Command-line cost summary

Builds the same report as GET /report/aws, without the authorization gate,
and prints it as text or as the JSON document.

Usage:
    cloud-cost --profiles dev,prod
    cloud-cost --assume-roles-file roles.json --base-profile org-admin --json
"""

import argparse
import asyncio
import json
import sys
from typing import List, Optional

from pydantic import ValidationError
import structlog

from cloud_cost.config.accounts import AccountsConfigError, load_accounts
from cloud_cost.config.settings import Settings, get_settings, parse_string_list
from cloud_cost.middleware.authentication import NoAuthorizer
from cloud_cost.models.cost import Report
from cloud_cost.models.schemas import ReportDocument
from cloud_cost.services.report_service import ReportService
from cloud_cost.utils.logging import setup_logging

logger = structlog.get_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="cloud-cost",
        description="Month-to-date AWS cost summary across multiple accounts",
    )
    parser.add_argument(
        "--profiles",
        type=str,
        help="Comma-separated list of AWS profiles (default: PROFILES_STR or 'default')"
    )
    parser.add_argument(
        "--region",
        type=str,
        help="Cost Explorer region (default: us-east-1)"
    )
    parser.add_argument(
        "--accounts-file",
        type=str,
        help="JSON file of static credentials or profile entries"
    )
    parser.add_argument(
        "--assume-roles-file",
        type=str,
        help="JSON file of roles to assume; takes precedence over --accounts-file"
    )
    parser.add_argument(
        "--base-profile",
        type=str,
        help="Profile used to call STS AssumeRole"
    )
    parser.add_argument("--top-n", type=int, help="Number of top services to list")
    parser.add_argument("--concurrency", type=int, help="Accounts fetched in parallel")
    parser.add_argument("--timeout", type=float, help="Overall deadline in seconds")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the JSON report document instead of a text summary"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Log progress to stderr"
    )
    return parser


def format_report(report: Report) -> str:
    """Render a report as a plain-text summary"""
    lines: List[str] = []
    rule = "=" * 60

    lines.append(rule)
    lines.append("AWS Cost Summary")
    lines.append(rule)
    lines.append(f"Current period:  {report.periods.current}")
    lines.append(f"Previous period: {report.periods.previous}")
    lines.append("")

    lines.append("Per-account breakdown:")
    for summary in report.summaries:
        if summary.failed:
            kind = summary.error_kind.value if summary.error_kind else "UNKNOWN"
            lines.append(f"  {summary.account_ref}: FAILED ({kind}) {summary.error or ''}".rstrip())
            continue
        label = summary.account_name
        if summary.account_id:
            label = f"{label} ({summary.account_id})"
        lines.append(f"  {label}: ${summary.total:,.2f}")

    lines.append("")
    lines.append(f"Total month-to-date: ${report.total_all:,.2f}")

    if report.top_services:
        lines.append("")
        lines.append(f"Top {len(report.top_services)} services:")
        for rank, (service, cost) in enumerate(report.top_services, start=1):
            lines.append(f"  {rank:>2}. {service}: ${cost:,.2f}")

    lines.append("")
    lines.append("Month-to-month comparison:")
    lines.append(f"  Previous period total: ${report.prev_total:,.2f}")
    lines.append(f"  Change: {'+' if report.delta >= 0 else '-'}${abs(report.delta):,.2f} ({report.delta_pct:+.1f}%)")

    failed = report.failed_accounts
    if failed:
        lines.append("")
        lines.append(f"Warning: {len(failed)} of {len(report.summaries)} accounts could not be queried")

    lines.append(rule)
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the cost summary command."""
    args = build_parser().parse_args(argv)

    settings = get_settings()
    overrides = {
        "aws_region": args.region,
        "accounts_file": args.accounts_file,
        "assume_roles_file": args.assume_roles_file,
        "base_profile": args.base_profile,
        "top_n": args.top_n,
        "concurrency_limit": args.concurrency,
        "request_timeout": args.timeout,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    try:
        # Re-validate so flags obey the same bounds as environment variables
        settings = Settings(**{**settings.model_dump(), **overrides})
    except ValidationError as e:
        print(f"Error: invalid option: {e}", file=sys.stderr)
        return 2

    setup_logging("INFO" if args.verbose else "WARNING", json_logs=settings.log_json)

    profiles = parse_string_list(args.profiles, []) if args.profiles else settings.profiles
    try:
        accounts = load_accounts(
            accounts_file=settings.accounts_file,
            assume_roles_file=settings.assume_roles_file,
            profiles=profiles,
            base_profile=settings.base_profile,
        )
    except AccountsConfigError as e:
        print(f"Error: invalid account configuration: {e}", file=sys.stderr)
        return 1

    logger.info("cost_summary_requested", accounts=len(accounts), json_output=args.json)

    try:
        service = ReportService.from_settings(settings, accounts, authorizer=NoAuthorizer())
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    report = asyncio.run(service.handle_report_request())

    if args.json:
        document = ReportDocument.from_report(report)
        print(json.dumps(document.model_dump(mode="json", exclude_none=True), indent=2))
    else:
        print(format_report(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
