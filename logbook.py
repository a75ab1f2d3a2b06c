#!/usr/bin/env python3
"""
Unified CLI for the vehicle trip logbook.

Commands:
  init          - Create an empty logbook file
  trips         - List trips
  ghosts        - List abandoned (ghost) trips
  start         - Start a trip
  end           - Complete a running trip
  abandon       - Mark a running trip as ghost
  edit          - Edit a trip (audited for protected vehicles)
  cancel        - Cancel (Storno) a completed trip
  delete        - Delete a trip
  log           - Record a finished trip from a template
  vehicles      - List vehicles
  add-vehicle   - Add a vehicle
  set-primary   - Make a vehicle the primary one
  purposes      - List trip purposes
  add-purpose   - Add a trip purpose
  templates     - List trip templates
  add-template  - Add a trip template
  delete-template - Delete a trip template
  audit         - Show the change log of a trip
  stats         - Distance statistics
  allowance     - Commuter allowance (Entfernungspauschale)
  export        - Export completed trips as CSV
"""

import argparse
import logging
import sys
from dataclasses import replace
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

from dateutil.parser import isoparse, parse as parse_fuzzy
from tabulate import tabulate

from triplog import (
    AuditTrail,
    ConfigError,
    ExportConfig,
    LogbookStore,
    MileageAllowanceCalculator,
    MileageResult,
    PurposeRegistry,
    Result,
    Settings,
    TemplateRegistry,
    Trip,
    TripAuditLog,
    TripCollectionView,
    TripLifecycle,
    TripPurpose,
    TripTemplate,
    ValidationError,
    Vehicle,
    VehicleRegistry,
    create_logbook,
    export_csv,
    load_logbook,
    local_naive,
    save_logbook,
)

# =============================================================================
# Formatting helpers
# =============================================================================


def format_km(km: Optional[float]) -> str:
    """Format a distance for display."""
    return f"{km:,.1f}" if km is not None else "-"


def format_odometer(reading: Optional[int]) -> str:
    """Format an odometer reading for display."""
    return f"{reading:,}" if reading is not None else "-"


def format_euro(amount) -> str:
    """Format a money amount for display."""
    return f"{amount:,.2f} €" if amount is not None else "-"


def format_date(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d %H:%M") if value is not None else "-"


def truncate(text: Optional[str], max_len: int = 30) -> str:
    """Truncate text with ellipsis if too long."""
    if not text:
        return "-"
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def parse_date(value: str) -> datetime:
    """Parse ISO dates, or German dd.mm.yyyy dates, as naive local time."""
    if "." in value:
        return local_naive(parse_fuzzy(value, dayfirst=True))
    return local_naive(isoparse(value))


def print_failure(result: Result) -> int:
    """Print a failed result and return the exit code."""
    error = result.error
    if isinstance(error, ValidationError):
        print("Error: validation failed")
        for field_name, message in sorted(error.errors.items()):
            print(f"  {field_name}: {message}")
    else:
        print(f"Error: {error}")
    return 1


# =============================================================================
# Table builders
# =============================================================================


def make_trip_table(trips: List[Trip], vehicles: dict) -> List[List[str]]:
    """Convert trips to table rows."""
    rows = []
    for trip in trips:
        vehicle = vehicles.get(trip.vehicle_id)
        rows.append(
            [
                str(trip.id),
                format_date(trip.date),
                "cancelled" if trip.is_cancelled else trip.phase.value,
                truncate(trip.start_location, 25),
                truncate(trip.end_location, 25),
                format_km(trip.distance_km) if trip.distance_km else "-",
                vehicle.license_plate if vehicle else "-",
                "yes" if trip.business_trip else "no",
                truncate(trip.purpose),
            ]
        )
    return rows


def make_vehicle_table(vehicles: List[Vehicle]) -> List[List[str]]:
    """Convert vehicles to table rows."""
    return [
        [
            str(v.id),
            v.name,
            v.license_plate,
            v.fuel_type,
            "*" if v.is_primary else "",
            "yes" if v.audit_protected else "no",
        ]
        for v in vehicles
    ]


def make_audit_table(entries: List[TripAuditLog]) -> List[List[str]]:
    """Convert audit entries to table rows."""
    return [
        [
            format_date(e.changed_at),
            e.field_name,
            truncate(e.old_value),
            truncate(e.new_value),
        ]
        for e in entries
    ]


def make_allowance_table(result: MileageResult) -> List[List[str]]:
    return [
        ["One-way distance", f"{result.one_way_distance_km:,.2f} km"],
        ["Working days", str(result.working_days)],
        ["Standard amount", format_euro(result.standard_amount)],
        ["Extended amount", format_euro(result.extended_amount)],
        ["Total", format_euro(result.total_amount)],
    ]


TRIP_HEADERS = ["ID", "Date", "Phase", "From", "To", "km", "Vehicle", "Business", "Purpose"]

# =============================================================================
# Command context
# =============================================================================


class Context:
    """Store and services for one CLI invocation."""

    def __init__(self, args, settings: Settings, store: LogbookStore):
        self.args = args
        self.settings = settings
        self.store = store
        self.lifecycle = TripLifecycle(store, start_policy=settings.start_policy)
        self.vehicles = VehicleRegistry(store)
        self.purposes = PurposeRegistry(store)
        self.templates = TemplateRegistry(store)
        self.view = TripCollectionView(store)

    def vehicle_map(self) -> dict:
        return {v.id: v for v in self.vehicles.get_all()}

    def commit(self, message: str) -> int:
        """Save the store unless this is a dry run."""
        if getattr(self.args, "dry_run", False):
            print("(dry run - no changes made)")
            return 0
        save_logbook(self.args.file, self.store)
        print(message)
        return 0


# =============================================================================
# Trip commands
# =============================================================================


def cmd_trips(ctx: Context) -> int:
    """List trips."""
    trips = ctx.view.all_trips()
    if ctx.args.vehicle is not None:
        trips = [t for t in trips if t.vehicle_id == ctx.args.vehicle]
    if ctx.args.since:
        since = parse_date(ctx.args.since)
        trips = [t for t in trips if t.date >= since]
    if ctx.args.asc:
        trips = list(reversed(trips))

    active = ctx.view.active_trip()
    print(f"Trips: {len(trips)}")
    if active:
        print(f"Running: #{active.id} from {active.start_location}")
    ghosts = ctx.view.ghost_count()
    if ghosts:
        print(f"Ghost trips: {ghosts}")
    print()

    if not trips:
        print("No trips found.")
        return 0
    print(tabulate(make_trip_table(trips, ctx.vehicle_map()), headers=TRIP_HEADERS, tablefmt="simple"))
    return 0


def cmd_ghosts(ctx: Context) -> int:
    """List ghost trips."""
    ghosts = ctx.view.ghost_trips()
    if not ghosts:
        print("No ghost trips.")
        return 0
    print(f"GHOST TRIPS ({len(ghosts)}):")
    print(tabulate(make_trip_table(ghosts, ctx.vehicle_map()), headers=TRIP_HEADERS, tablefmt="simple"))
    return 0


def cmd_start(ctx: Context) -> int:
    """Start a trip."""
    args = ctx.args
    vehicle_id = args.vehicle
    if vehicle_id is None:
        primary = ctx.vehicles.get_primary()
        vehicle_id = primary.id if primary else None

    odometer = args.odometer
    if odometer is None and vehicle_id is not None:
        odometer = ctx.lifecycle.last_end_odometer(vehicle_id)

    draft = Trip(
        date=parse_date(args.date) if args.date else datetime.now(),
        start_location=args.start_location,
        start_odometer=odometer,
        vehicle_id=vehicle_id,
        notes=args.notes,
    )
    result = ctx.lifecycle.start(draft)
    if not result.is_ok:
        return print_failure(result)

    trip = result.value
    print(f"Started trip #{trip.id}:")
    print(f"  From:     {trip.start_location}")
    print(f"  Odometer: {format_odometer(trip.start_odometer)}")
    print()
    return ctx.commit("Trip saved.")


def cmd_end(ctx: Context) -> int:
    """Complete a running trip."""
    args = ctx.args
    result = ctx.lifecycle.complete(
        args.trip_id,
        end_location=args.end_location,
        end_odometer=args.odometer,
        purpose=args.purpose or "",
        notes=args.notes,
        purpose_id=args.purpose_id,
    )
    if not result.is_ok:
        return print_failure(result)

    trip = result.value
    print(f"Completed trip #{trip.id}:")
    print(f"  {trip.start_location} -> {trip.end_location}")
    print(f"  Distance: {format_km(trip.distance_km)} km")
    print()
    return ctx.commit("Trip saved.")


def cmd_abandon(ctx: Context) -> int:
    """Mark a running trip as ghost."""
    result = ctx.lifecycle.mark_ghost(ctx.args.trip_id)
    if not result.is_ok:
        return print_failure(result)
    print(f"Trip #{ctx.args.trip_id} marked as ghost.")
    return ctx.commit("Trip saved.")


def cmd_edit(ctx: Context) -> int:
    """Edit a trip."""
    args = ctx.args
    existing = ctx.lifecycle.get_trip(args.trip_id)
    if existing is None:
        print(f"Error: Trip with ID {args.trip_id} not found")
        return 1

    changes = {}
    if args.date:
        changes["date"] = parse_date(args.date)
    if args.start_location is not None:
        changes["start_location"] = args.start_location
    if args.end_location is not None:
        changes["end_location"] = args.end_location
    if args.start_odometer is not None:
        changes["start_odometer"] = args.start_odometer
    if args.end_odometer is not None:
        changes["end_odometer"] = args.end_odometer
    if args.purpose is not None:
        changes["purpose"] = args.purpose
    if args.purpose_id is not None:
        changes["purpose_id"] = args.purpose_id
    if args.notes is not None:
        changes["notes"] = args.notes
    if args.vehicle is not None:
        changes["vehicle_id"] = args.vehicle
    if args.resume:
        changes["is_active"] = True

    result = ctx.lifecycle.edit(existing, replace(existing, **changes))
    if not result.is_ok:
        return print_failure(result)

    entries = ctx.lifecycle.audit.get_audit_log_for_trip(args.trip_id)
    print(f"Updated trip #{args.trip_id} ({result.value.phase.value}).")
    if ctx.vehicles.is_audit_protected(result.value.vehicle_id or 0):
        print(f"Audit entries: {len(entries)}")
    return ctx.commit("Trip saved.")


def cmd_cancel(ctx: Context) -> int:
    """Cancel a completed trip, keeping it in the logbook."""
    result = ctx.lifecycle.cancel(ctx.args.trip_id, ctx.args.reason)
    if not result.is_ok:
        return print_failure(result)
    print(f"Cancelled trip #{ctx.args.trip_id}: {result.value.cancellation_reason}")
    return ctx.commit("Trip saved.")


def cmd_log(ctx: Context) -> int:
    """Record a finished trip from a template."""
    args = ctx.args
    template = ctx.templates.get_by_id(args.template_id)
    if template is None:
        print(f"Error: TripTemplate with ID {args.template_id} not found")
        return 1

    vehicle_id = args.vehicle if args.vehicle is not None else template.vehicle_id
    if vehicle_id is None:
        primary = ctx.vehicles.get_primary()
        vehicle_id = primary.id if primary else None

    odometer = args.odometer
    if odometer is None and vehicle_id is not None:
        odometer = ctx.lifecycle.last_end_odometer(vehicle_id)

    draft = ctx.templates.draft_trip(
        template.id,
        parse_date(args.date) if args.date else datetime.now(),
        start_odometer=odometer,
        vehicle_id=vehicle_id,
    )
    if not draft.is_ok:
        return print_failure(draft)
    result = ctx.lifecycle.record(draft.value)
    if not result.is_ok:
        return print_failure(result)

    trip = result.value
    print(f"Recorded trip #{trip.id} from template '{template.name}':")
    print(f"  {trip.start_location} -> {trip.end_location}")
    print(f"  Distance: {format_km(trip.distance_km)} km")
    print()
    return ctx.commit("Trip saved.")


def cmd_delete(ctx: Context) -> int:
    """Delete a trip."""
    trip = ctx.lifecycle.get_trip(ctx.args.trip_id)
    if trip is None:
        print(f"Error: Trip with ID {ctx.args.trip_id} not found")
        return 1
    result = ctx.lifecycle.delete(trip)
    if not result.is_ok:
        return print_failure(result)
    print(f"Deleted trip #{trip.id}.")
    return ctx.commit("Logbook saved.")


def cmd_audit(ctx: Context) -> int:
    """Show the audit log of a trip."""
    entries = AuditTrail(ctx.store).get_audit_log_for_trip(ctx.args.trip_id)
    if not entries:
        print("No audit entries found.")
        return 0
    headers = ["Changed", "Field", "Old", "New"]
    print(tabulate(make_audit_table(entries), headers=headers, tablefmt="simple"))
    return 0


# =============================================================================
# Vehicle, purpose and template commands
# =============================================================================


def cmd_vehicles(ctx: Context) -> int:
    """List vehicles."""
    vehicles = ctx.vehicles.get_all()
    if not vehicles:
        print("No vehicles found.")
        return 0
    headers = ["ID", "Vehicle", "Plate", "Fuel", "Primary", "Audit-protected"]
    print(tabulate(make_vehicle_table(vehicles), headers=headers, tablefmt="simple"))
    return 0


def cmd_add_vehicle(ctx: Context) -> int:
    """Add a vehicle."""
    args = ctx.args
    vehicle = Vehicle(
        make=args.make,
        model=args.model,
        license_plate=args.plate,
        fuel_type=args.fuel,
        is_primary=args.primary,
        audit_protected=args.audit_protected,
    )
    result = ctx.vehicles.insert(vehicle)
    if not result.is_ok:
        return print_failure(result)
    print(f"Added vehicle #{result.value.id}: {result.value.name} ({result.value.license_plate})")
    return ctx.commit("Vehicle saved.")


def cmd_set_primary(ctx: Context) -> int:
    """Make a vehicle the primary one."""
    result = ctx.vehicles.set_primary(ctx.args.vehicle_id)
    if not result.is_ok:
        return print_failure(result)
    print(f"Primary vehicle: {result.value.name} ({result.value.license_plate})")
    return ctx.commit("Vehicle saved.")


def cmd_purposes(ctx: Context) -> int:
    """List trip purposes."""
    purposes = ctx.purposes.get_all()
    if not purposes:
        print("No purposes found.")
        return 0
    rows = [
        [
            str(p.id),
            p.name,
            "yes" if p.is_business_relevant else "no",
            "yes" if p.is_default else "no",
            str(ctx.purposes.trip_count(p.id)),
        ]
        for p in purposes
    ]
    headers = ["ID", "Name", "Business", "Default", "Trips"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


def cmd_add_purpose(ctx: Context) -> int:
    """Add a trip purpose."""
    purpose = TripPurpose(name=ctx.args.name, is_business_relevant=ctx.args.business)
    if ctx.args.color:
        purpose = replace(purpose, color=ctx.args.color)
    result = ctx.purposes.insert(purpose)
    if not result.is_ok:
        return print_failure(result)
    print(f"Added purpose #{result.value.id}: {result.value.name}")
    return ctx.commit("Purpose saved.")


def cmd_templates(ctx: Context) -> int:
    """List trip templates."""
    templates = ctx.templates.get_all()
    if not templates:
        print("No templates found.")
        return 0
    rows = [
        [
            str(t.id),
            t.name,
            truncate(t.start_location, 25),
            truncate(t.end_location, 25),
            format_km(t.distance_km),
            truncate(t.purpose),
        ]
        for t in templates
    ]
    headers = ["ID", "Name", "From", "To", "km", "Purpose"]
    print(tabulate(rows, headers=headers, tablefmt="simple"))
    return 0


def cmd_add_template(ctx: Context) -> int:
    """Add a trip template."""
    args = ctx.args
    template = TripTemplate(
        name=args.name,
        start_location=args.start_location,
        end_location=args.end_location,
        distance_km=args.distance,
        purpose=args.purpose or "",
        purpose_id=args.purpose_id,
        notes=args.notes,
        vehicle_id=args.vehicle,
        business_partner=args.partner,
    )
    result = ctx.templates.insert(template)
    if not result.is_ok:
        return print_failure(result)
    print(f"Added template #{result.value.id}: {result.value.name}")
    return ctx.commit("Template saved.")


def cmd_delete_template(ctx: Context) -> int:
    """Delete a trip template."""
    template = ctx.templates.get_by_id(ctx.args.template_id)
    if template is None:
        print(f"Error: TripTemplate with ID {ctx.args.template_id} not found")
        return 1
    result = ctx.templates.delete(template)
    if not result.is_ok:
        return print_failure(result)
    print(f"Deleted template #{template.id}.")
    return ctx.commit("Template saved.")


# =============================================================================
# Reporting commands
# =============================================================================


def cmd_stats(ctx: Context) -> int:
    """Distance statistics."""
    year = ctx.args.year or date.today().year
    by_type = ctx.view.distance_by_type()

    print(f"Total distance:    {format_km(ctx.view.total_distance())} km")
    print(f"Business distance: {format_km(by_type.business_distance_km)} km")
    print(f"Private distance:  {format_km(by_type.private_distance_km)} km")
    print(f"Ghost trips:       {ctx.view.ghost_count()}")
    print(f"Cancelled trips:   {len(ctx.view.cancelled_trips())}")
    print()

    monthly = ctx.view.monthly_distance_summary(year)
    if not monthly:
        print(f"No completed trips in {year}.")
        return 0
    rows = [[f"{year}-{m.month:02d}", format_km(m.total_distance)] for m in monthly]
    print(tabulate(rows, headers=["Month", "km"], tablefmt="simple"))
    return 0


def cmd_allowance(ctx: Context) -> int:
    """Commuter allowance."""
    args = ctx.args
    year = args.year or date.today().year
    calculator = MileageAllowanceCalculator(ctx.settings.rates_for(year))

    if args.distance is not None:
        result = calculator.calculate(args.distance, args.days)
        print(f"Allowance for a {args.distance:g} km one-way commute:")
    else:
        result = calculator.for_year(ctx.view, year, args.days)
        print(f"Allowance from business trips in {year}:")
        print(f"  Business trips: {ctx.view.business_trip_count_for_year(year)}")
        print(f"  Business distance: {format_km(ctx.view.business_distance_for_year(year))} km")
    print()
    print(tabulate(make_allowance_table(result), tablefmt="simple"))
    return 0


def cmd_export(ctx: Context) -> int:
    """Export completed trips as CSV."""
    args = ctx.args
    config = ExportConfig(
        date_from=parse_date(args.date_from).date(),
        date_to=parse_date(args.date_to).date(),
        vehicle_id=args.vehicle,
        purpose_ids=set(args.purpose_id or []),
        include_audit_log=args.audit,
        driver_name=args.driver or "",
    )
    path = export_csv(ctx.store, config, args.out)
    print(f"Exported to {path}")
    return 0


# =============================================================================
# Main
# =============================================================================


def build_parser(settings: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Vehicle trip logbook",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init
  %(prog)s add-vehicle VW Golf "B AB 1234" Benzin --primary --audit-protected
  %(prog)s start --from "Berlin Mitte" --odometer 10000
  %(prog)s end 1 --to "Potsdam" --odometer 10035 --purpose "Kundentermin"
  %(prog)s edit 1 --to "Potsdam Hbf"
  %(prog)s cancel 1 --reason "Doppelt erfasst"
  %(prog)s add-template Pendeln --from Berlin --to Potsdam --distance 35
  %(prog)s log 1 --odometer 10035
  %(prog)s audit 1
  %(prog)s allowance --distance 25 --days 220
  %(prog)s export --from 2025-01-01 --to 2025-12-31 --audit
""",
    )
    parser.add_argument(
        "-f",
        "--file",
        type=Path,
        default=settings.logbook_file,
        help=f"Path to logbook YAML file (default: {settings.logbook_file})",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("init", help="Create an empty logbook file")

    trips_parser = subparsers.add_parser("trips", help="List trips")
    trips_parser.add_argument("--vehicle", type=int, help="Filter by vehicle ID")
    trips_parser.add_argument("--since", type=str, help="Only trips since date")
    trips_parser.add_argument("--asc", action="store_true", help="Oldest first")

    subparsers.add_parser("ghosts", help="List abandoned trips")

    start_parser = subparsers.add_parser("start", help="Start a trip")
    start_parser.add_argument("--from", dest="start_location", required=True, help="Start location")
    start_parser.add_argument(
        "--odometer", type=int, help="Start odometer (default: last end odometer)"
    )
    start_parser.add_argument("--vehicle", type=int, help="Vehicle ID (default: primary)")
    start_parser.add_argument("--date", type=str, help="Start date/time (default: now)")
    start_parser.add_argument("--notes", type=str, help="Notes")
    start_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    end_parser = subparsers.add_parser("end", help="Complete a running trip")
    end_parser.add_argument("trip_id", type=int, help="Trip ID")
    end_parser.add_argument("--to", dest="end_location", required=True, help="End location")
    end_parser.add_argument("--odometer", type=int, required=True, help="End odometer")
    end_parser.add_argument("--purpose", type=str, help="Purpose of the trip")
    end_parser.add_argument("--purpose-id", type=int, help="Purpose category ID")
    end_parser.add_argument("--notes", type=str, help="Notes")
    end_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    abandon_parser = subparsers.add_parser("abandon", help="Mark a running trip as ghost")
    abandon_parser.add_argument("trip_id", type=int, help="Trip ID")
    abandon_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    edit_parser = subparsers.add_parser("edit", help="Edit a trip")
    edit_parser.add_argument("trip_id", type=int, help="Trip ID")
    edit_parser.add_argument("--date", type=str, help="Trip date")
    edit_parser.add_argument("--from", dest="start_location", help="Start location")
    edit_parser.add_argument("--to", dest="end_location", help="End location")
    edit_parser.add_argument("--start-odometer", type=int, help="Start odometer")
    edit_parser.add_argument("--end-odometer", type=int, help="End odometer")
    edit_parser.add_argument("--purpose", type=str, help="Purpose of the trip")
    edit_parser.add_argument("--purpose-id", type=int, help="Purpose category ID")
    edit_parser.add_argument("--notes", type=str, help="Notes")
    edit_parser.add_argument("--vehicle", type=int, help="Vehicle ID")
    edit_parser.add_argument(
        "--resume", action="store_true", help="Move a ghost trip back to running"
    )
    edit_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    cancel_parser = subparsers.add_parser("cancel", help="Cancel a completed trip")
    cancel_parser.add_argument("trip_id", type=int, help="Trip ID")
    cancel_parser.add_argument("--reason", required=True, help="Why the trip is void")
    cancel_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    log_parser = subparsers.add_parser("log", help="Record a finished trip from a template")
    log_parser.add_argument("template_id", type=int, help="Template ID")
    log_parser.add_argument(
        "--odometer", type=int, help="Start odometer (default: last end odometer)"
    )
    log_parser.add_argument(
        "--vehicle", type=int, help="Vehicle ID (default: template, then primary)"
    )
    log_parser.add_argument("--date", type=str, help="Trip date (default: now)")
    log_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    delete_parser = subparsers.add_parser("delete", help="Delete a trip")
    delete_parser.add_argument("trip_id", type=int, help="Trip ID")
    delete_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    subparsers.add_parser("vehicles", help="List vehicles")

    vehicle_parser = subparsers.add_parser("add-vehicle", help="Add a vehicle")
    vehicle_parser.add_argument("make", help="Make (e.g. VW)")
    vehicle_parser.add_argument("model", help="Model (e.g. Golf)")
    vehicle_parser.add_argument("plate", help='License plate (e.g. "B AB 1234")')
    vehicle_parser.add_argument("fuel", help="Fuel type")
    vehicle_parser.add_argument("--primary", action="store_true", help="Make primary")
    vehicle_parser.add_argument(
        "--audit-protected", action="store_true", help="Log all trip changes, forbid deletion"
    )
    vehicle_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    primary_parser = subparsers.add_parser("set-primary", help="Make a vehicle primary")
    primary_parser.add_argument("vehicle_id", type=int, help="Vehicle ID")
    primary_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    subparsers.add_parser("purposes", help="List trip purposes")

    purpose_parser = subparsers.add_parser("add-purpose", help="Add a trip purpose")
    purpose_parser.add_argument("name", help="Purpose name")
    purpose_parser.add_argument("--business", action="store_true", help="Business relevant")
    purpose_parser.add_argument("--color", type=str, help="Display color (e.g. #1E88E5)")
    purpose_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    subparsers.add_parser("templates", help="List trip templates")

    template_parser = subparsers.add_parser("add-template", help="Add a trip template")
    template_parser.add_argument("name", help="Template name")
    template_parser.add_argument(
        "--from", dest="start_location", required=True, help="Start location"
    )
    template_parser.add_argument("--to", dest="end_location", required=True, help="End location")
    template_parser.add_argument("--distance", type=float, required=True, help="Distance in km")
    template_parser.add_argument("--purpose", type=str, help="Purpose of the trip")
    template_parser.add_argument("--purpose-id", type=int, help="Purpose category ID")
    template_parser.add_argument("--vehicle", type=int, help="Vehicle ID")
    template_parser.add_argument("--partner", type=str, help="Business partner")
    template_parser.add_argument("--notes", type=str, help="Notes")
    template_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    delete_template_parser = subparsers.add_parser("delete-template", help="Delete a trip template")
    delete_template_parser.add_argument("template_id", type=int, help="Template ID")
    delete_template_parser.add_argument("--dry-run", action="store_true", help="Do not save")

    audit_parser = subparsers.add_parser("audit", help="Show the change log of a trip")
    audit_parser.add_argument("trip_id", type=int, help="Trip ID")

    stats_parser = subparsers.add_parser("stats", help="Distance statistics")
    stats_parser.add_argument("--year", type=int, help="Year for the monthly breakdown")

    allowance_parser = subparsers.add_parser("allowance", help="Commuter allowance")
    allowance_parser.add_argument(
        "--distance", type=float, help="One-way commute distance in km (default: from trips)"
    )
    allowance_parser.add_argument("--days", type=int, help="Working days")
    allowance_parser.add_argument("--year", type=int, help="Tax year (default: this year)")

    export_parser = subparsers.add_parser("export", help="Export trips as CSV")
    export_parser.add_argument("--from", dest="date_from", required=True, help="First day")
    export_parser.add_argument("--to", dest="date_to", required=True, help="Last day")
    export_parser.add_argument("--vehicle", type=int, help="Only this vehicle")
    export_parser.add_argument(
        "--purpose-id", type=int, action="append", help="Only these purposes (repeatable)"
    )
    export_parser.add_argument("--audit", action="store_true", help="Include audit log")
    export_parser.add_argument("--driver", type=str, help="Driver name")
    export_parser.add_argument("--out", type=Path, default=Path("."), help="Output directory")

    return parser


COMMANDS = {
    "trips": cmd_trips,
    "ghosts": cmd_ghosts,
    "start": cmd_start,
    "end": cmd_end,
    "abandon": cmd_abandon,
    "edit": cmd_edit,
    "cancel": cmd_cancel,
    "log": cmd_log,
    "delete": cmd_delete,
    "audit": cmd_audit,
    "vehicles": cmd_vehicles,
    "add-vehicle": cmd_add_vehicle,
    "set-primary": cmd_set_primary,
    "purposes": cmd_purposes,
    "add-purpose": cmd_add_purpose,
    "templates": cmd_templates,
    "add-template": cmd_add_template,
    "delete-template": cmd_delete_template,
    "stats": cmd_stats,
    "allowance": cmd_allowance,
    "export": cmd_export,
}


def main(argv: Optional[List[str]] = None) -> int:
    try:
        settings = Settings.from_env()
    except ConfigError as e:
        print(f"Error: {e}")
        return 1

    logging.basicConfig(
        level=settings.log_level, format="%(levelname)s %(name)s: %(message)s"
    )

    args = build_parser(settings).parse_args(argv)

    if args.command == "init":
        if args.file.exists():
            print(f"Error: File already exists: {args.file}")
            return 1
        create_logbook(args.file)
        store = load_logbook(args.file)
        PurposeRegistry(store).seed_defaults()
        save_logbook(args.file, store)
        print(f"Created {args.file}")
        return 0

    # Validate logbook file exists
    if not args.file.exists():
        print(f"Error: File not found: {args.file}")
        return 1

    try:
        ctx = Context(args, settings, load_logbook(args.file))
        return COMMANDS[args.command](ctx)
    except ConfigError as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main() or 0)
