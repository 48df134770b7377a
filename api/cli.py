#!/usr/bin/env python3
"""
Logistics KPI CLI Tool.

Command-line interface for offline runs and operations:
- KPI computation over spreadsheet/CSV exports
- Integrity reports
- Facility registry listing and location resolution
- Health checks against a running server

Usage:
    python -m api.cli kpis --voyage-events events.xlsx --manifests manifests.xlsx
    python -m api.cli integrity --voyage-events events.xlsx
    python -m api.cli facilities
    python -m api.cli resolve "Thunder Horse Drilling"
    python -m api.cli check-health
"""
import argparse
import json
import sys
from typing import List, Optional

DATASET_ARGS = {
    "voyage_events": "--voyage-events",
    "vessel_manifests": "--manifests",
    "cost_allocations": "--cost-allocations",
    "bulk_actions": "--bulk-actions",
    "voyages": "--voyages",
}


def _load(args: argparse.Namespace):
    from src.config import settings as engine_settings
    from src.logistics.facilities import get_facility_registry
    from src.logistics.tabular import TabularBatchLoader

    sources = {
        dataset: getattr(args, dataset)
        for dataset in DATASET_ARGS
        if getattr(args, dataset, None)
    }
    if not sources:
        print("\nError: at least one dataset file is required.")
        sys.exit(1)
    registry = get_facility_registry(args.registry or engine_settings.facility_registry_path)
    try:
        return registry, TabularBatchLoader(registry).load(sources)
    except (FileNotFoundError, ValueError) as e:
        print(f"\nError: {e}")
        sys.exit(1)


def run_kpis(args: argparse.Namespace) -> None:
    """Compute and print the KPI set as JSON."""
    from src.config import settings as engine_settings
    from src.logistics.kpi import FilterSelection, compute_kpis

    registry, batch = _load(args)
    try:
        selection = FilterSelection.parse(
            period=args.period,
            month=args.month,
            year=args.year,
            location=args.location,
            department=args.department,
            registry=registry,
            lag_months=engine_settings.reporting_lag_months,
        )
    except ValueError as e:
        print(f"\nError: {e}")
        sys.exit(1)

    kpis = compute_kpis(
        batch,
        selection,
        registry=registry,
        parallel=engine_settings.kpi_parallel,
        max_workers=engine_settings.kpi_workers,
        lag_months=engine_settings.reporting_lag_months,
    )
    print(json.dumps(kpis.to_dict(), indent=2, default=str))


def run_integrity(args: argparse.Namespace) -> None:
    """Print the integrity report; exit 2 when critical issues exist."""
    from src.config import settings as engine_settings
    from src.logistics.integrity import DataIntegrityValidator

    registry, batch = _load(args)
    report = DataIntegrityValidator(
        registry=registry,
        single_month_min_records=engine_settings.single_month_min_records,
        coverage_warning_percent=engine_settings.coverage_warning_percent,
    ).validate(batch)

    if args.json:
        print(json.dumps(report.to_dict(), indent=2, default=str))
    else:
        print("\n" + "=" * 80)
        print(f"DATA INTEGRITY SCORE: {report.score:.1f}")
        print("=" * 80)
        print(f"{'Severity':<10} {'Category':<16} {'Dataset':<18} {'Count':<6} Message")
        print("-" * 80)
        for issue in report.issues:
            print(
                f"{issue.severity.value:<10} "
                f"{issue.category.value[:15]:<16} "
                f"{issue.dataset[:17]:<18} "
                f"{issue.count:<6} "
                f"{issue.message}"
            )
        print("=" * 80)
        for recommendation in report.recommendations:
            print(f"- {recommendation}")
        print()

    if report.critical_count:
        sys.exit(2)


def list_facilities(registry_path: Optional[str] = None) -> None:
    from src.logistics.facilities import get_facility_registry

    registry = get_facility_registry(registry_path)
    print("\n" + "=" * 80)
    print("FACILITIES")
    print("=" * 80)
    print(f"{'ID':<4} {'Name':<28} {'Type':<11} {'Parent':<7} {'Codes':<28}")
    print("-" * 80)
    for facility in registry:
        codes = ",".join(sorted(facility.drilling_codes | facility.production_codes))
        print(
            f"{facility.facility_id:<4} "
            f"{facility.display_name[:27]:<28} "
            f"{facility.facility_type.value:<11} "
            f"{str(facility.parent_id or '-'):<7} "
            f"{codes[:28]:<28}"
        )
    print("=" * 80)
    print(f"Total: {len(registry)} facilities\n")


def resolve(location: str, registry_path: Optional[str] = None) -> None:
    from src.logistics.facilities import get_facility_registry
    from src.logistics.location_resolver import LocationResolver

    facility, rule = LocationResolver(get_facility_registry(registry_path)).explain(location)
    if facility is None:
        print(f"\n{location!r}: unresolved ({rule})")
        sys.exit(1)
    print(f"\n{location!r} -> {facility.display_name} (id {facility.facility_id}, rule: {rule})")


def check_health(url: str) -> None:
    """Check API health."""
    import requests

    try:
        response = requests.get(url, timeout=5)
        if response.status_code == 200:
            data = response.json()
            print(f"\nAPI Status: {data.get('status', 'unknown')}")
            print(f"Version: {data.get('version', 'unknown')}")
            for name, component in data.get("components", {}).items():
                print(f"  {name}: {component.get('status')} ({component.get('message')})")
        else:
            print(f"\nAPI returned status code: {response.status_code}")
            sys.exit(1)
    except requests.exceptions.ConnectionError:
        print("\nError: Could not connect to API. Is the server running?")
        sys.exit(1)


def _add_batch_args(parser: argparse.ArgumentParser) -> None:
    for dataset, flag in DATASET_ARGS.items():
        parser.add_argument(flag, dest=dataset, help=f"{dataset.replace('_', ' ')} file (.xlsx/.csv)")
    parser.add_argument("--registry", help="Facility registry JSON (default: built-in list)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Logistics KPI CLI Tool",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  KPIs for March 2024 at Thunder Horse, drilling only:
    python -m api.cli kpis --voyage-events events.xlsx --manifests manifests.xlsx \\
        --cost-allocations costs.xlsx --period month --month Mar --year 2024 \\
        --location "Thunder Horse" --department Drilling

  Integrity report:
    python -m api.cli integrity --voyage-events events.xlsx --bulk-actions bulk.csv

  Resolve a location string:
    python -m api.cli resolve "Mad Dog Drilling"

  Check API health:
    python -m api.cli check-health --url http://localhost:8000/api/health
        """
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    kpi_parser = subparsers.add_parser("kpis", help="Compute KPIs from spreadsheet/CSV files")
    _add_batch_args(kpi_parser)
    kpi_parser.add_argument("--period", default="all", choices=["all", "month", "ytd"])
    kpi_parser.add_argument("--month", help="Month name, abbreviation or number")
    kpi_parser.add_argument("--year", type=int)
    kpi_parser.add_argument("--location", help="Facility name, alias or id")
    kpi_parser.add_argument("--department", default="All", help="All, Drilling or Production")

    integrity_parser = subparsers.add_parser("integrity", help="Data integrity report")
    _add_batch_args(integrity_parser)
    integrity_parser.add_argument("--json", action="store_true", help="Print the report as JSON")

    facilities_parser = subparsers.add_parser("facilities", help="List registry facilities")
    facilities_parser.add_argument("--registry", help="Facility registry JSON")

    resolve_parser = subparsers.add_parser("resolve", help="Resolve a location string")
    resolve_parser.add_argument("location")
    resolve_parser.add_argument("--registry", help="Facility registry JSON")

    health_parser = subparsers.add_parser("check-health", help="Check API health")
    health_parser.add_argument("--url", default="http://localhost:8000/api/health")

    return parser


def main(argv: Optional[List[str]] = None):
    from src.config import settings as engine_settings

    parser = build_parser()
    args = parser.parse_args(argv)
    engine_settings.configure_logging()

    if args.command == "kpis":
        run_kpis(args)
    elif args.command == "integrity":
        run_integrity(args)
    elif args.command == "facilities":
        list_facilities(args.registry)
    elif args.command == "resolve":
        resolve(args.location, args.registry)
    elif args.command == "check-health":
        check_health(args.url)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
