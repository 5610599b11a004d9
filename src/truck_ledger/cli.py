"""Command-line entry points for the truck ledger.

All orchestration in this module is limited to argparse wiring, translating
command-line arguments into the command objects consumed by the business
layer, and printing report output. Keeping the CLI thin lets tests and other
front-ends reuse the same parser configuration.
"""

from __future__ import annotations

import argparse
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, MutableMapping, Optional, Sequence

from . import core_logic, log, printing, repository, runtime, views
from .commands import AdditionalTruckTransactionPayload, TruckTransactionPayload, resolve_date_range
from .constants import DocType, UserRole


PRINT_FAILED_EXIT_CODE = 4
WRITE_COMMANDS = frozenset({"add-customer", "add-truck", "record", "edit", "record-misc", "delete", "print"})


@dataclass(frozen=True)
class CommandSpec:
    """Describe how a CLI sub-command is configured and executed."""

    name: str
    help_text: str
    register: Callable[[argparse._SubParsersAction[argparse.ArgumentParser]], argparse.ArgumentParser]
    execute: Callable[[runtime.RuntimeContext, argparse.Namespace], int]


def build_parser() -> argparse.ArgumentParser:
    """Construct the top-level CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="truck-ledger",
        description="Command-line tools for the truck ledger workbook.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Optional path to config.ini (defaults to ./config.ini).",
    )
    return parser


def configure_subcommands(
    parser: argparse.ArgumentParser,
) -> Mapping[str, CommandSpec]:
    """Wire all CLI sub-commands onto the supplied parser."""
    subparsers = parser.add_subparsers(dest="command", required=True, title="commands")
    write_specs = register_write_commands(subparsers)
    read_specs = register_read_commands(subparsers)
    return build_command_table([*write_specs.values(), *read_specs.values()])


def register_write_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare mutating CLI commands; the workbook is saved when they succeed."""
    specs = {
        "add-customer": register_add_customer_command(subparsers),
        "add-truck": register_add_truck_command(subparsers),
        "record": register_record_command(subparsers),
        "edit": register_edit_command(subparsers),
        "record-misc": register_record_misc_command(subparsers),
        "delete": register_delete_command(subparsers),
        "print": register_print_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def register_read_commands(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> Dict[str, CommandSpec]:
    """Declare read-only CLI commands such as reports."""
    specs = {
        "transactions": register_transactions_command(subparsers),
        "summary": register_summary_command(subparsers),
        "misc": register_misc_command(subparsers),
        "autocomplete": register_autocomplete_command(subparsers),
    }
    for spec in specs.values():
        spec.register(subparsers)
    return specs


def _add_transaction_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--date", required=True, help="ISO-8601 date of the haul.")
    parser.add_argument("--container-no", required=True)
    parser.add_argument("--invoice-no", required=True)
    parser.add_argument("--destination", required=True)
    parser.add_argument("--cost", required=True)
    parser.add_argument("--selling-price", required=True)
    parser.add_argument("--customer", required=True, help="Customer initial.")
    parser.add_argument("--truck-id", required=True)
    parser.add_argument("--income", default=None)
    parser.add_argument("--pph", default="0")
    parser.add_argument("--bon", default="")
    parser.add_argument("--details", default="")
    parser.add_argument(
        "--editable-until",
        default=None,
        help="ISO-8601 timestamp until which plain users may still edit the row.",
    )


def _add_date_range_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--start-date", default=None, help="ISO-8601 start (defaults to the start of this month).")
    parser.add_argument("--end-date", default=None, help="ISO-8601 end (defaults to the end of today).")


def register_add_customer_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-customer``."""
    name = "add-customer"
    help_text = "Register a customer initial."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--initial", required=True)
        parser.add_argument("--customer-id", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_customer)


def register_add_truck_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``add-truck``."""
    name = "add-truck"
    help_text = "Register a truck."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--name", required=True)
        parser.add_argument("--truck-id", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_add_truck)


def register_record_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``record``."""
    name = "record"
    help_text = "Record a truck transaction."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_transaction_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_record)


def register_edit_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``edit``."""
    name = "edit"
    help_text = "Edit an existing truck transaction."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True)
        _add_transaction_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_edit)


def register_record_misc_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``record-misc``."""
    name = "record-misc"
    help_text = "Record a miscellaneous truck cost."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--date", required=True)
        parser.add_argument("--details", required=True)
        parser.add_argument("--cost", required=True)
        parser.add_argument("--selling-price", default="0")
        parser.add_argument("--truck-id", default=None)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_record_misc)


def register_delete_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``delete``."""
    name = "delete"
    help_text = "Delete a truck transaction."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--transaction-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_delete)


def register_print_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``print``."""
    name = "print"
    help_text = "Print a bon or tagihan for one or more transactions."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--doc-type", choices=[member.value for member in DocType], required=True)
        parser.add_argument("transaction_ids", nargs="+", metavar="TRANSACTION_ID")
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_print)


def register_transactions_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``transactions``."""
    name = "transactions"
    help_text = "List truck transactions, optionally for one customer or truck."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        target = parser.add_mutually_exclusive_group()
        target.add_argument("--customer-id", default=None)
        target.add_argument("--truck-id", default=None)
        _add_date_range_arguments(parser)
        parser.add_argument("--role", choices=[member.value for member in UserRole], default=UserRole.ADMIN.value)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_transactions_report)


def register_summary_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``summary``."""
    name = "summary"
    help_text = "Display cost and selling price per truck."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        _add_date_range_arguments(parser)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_summary_report)


def register_misc_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``misc``."""
    name = "misc"
    help_text = "List miscellaneous costs recorded for a truck."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.add_argument("--truck-id", required=True)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_misc_report)


def register_autocomplete_command(
    subparsers: argparse._SubParsersAction[argparse.ArgumentParser],
) -> CommandSpec:
    """Register the parser and executor for ``autocomplete``."""
    name = "autocomplete"
    help_text = "Display known values for transaction form fields."

    def registrar(action: argparse._SubParsersAction[argparse.ArgumentParser]) -> argparse.ArgumentParser:
        parser = action.add_parser(name, help=help_text)
        parser.set_defaults(command=name)
        return parser

    return CommandSpec(name=name, help_text=help_text, register=registrar, execute=run_autocomplete_report)


def load_runtime_context(config_path: Optional[Path] = None) -> runtime.RuntimeContext:
    """Resolve the runtime context for CLI operations."""
    target = Path(config_path) if config_path is not None else Path.cwd() / "config.ini"
    return runtime.load_runtime_context(target)


def dispatch_command(
    context: runtime.RuntimeContext,
    args: argparse.Namespace,
    command_table: Mapping[str, CommandSpec],
) -> int:
    """Dispatch the parsed arguments to the configured executor."""
    if not hasattr(args, "command") or args.command is None:
        raise KeyError("No command specified")
    spec = command_table.get(args.command)
    if spec is None:
        raise KeyError(f"Unknown command: {args.command}")
    return spec.execute(context, args)


def build_command_table(
    specs: Iterable[CommandSpec],
) -> MutableMapping[str, CommandSpec]:
    """Build an index of command specifications keyed by command name."""
    table: Dict[str, CommandSpec] = {}
    for spec in specs:
        if spec.name in table:
            raise ValueError(f"Duplicate command name: {spec.name}")
        table[spec.name] = spec
    return table


def translate_truck_transaction(args: argparse.Namespace) -> TruckTransactionPayload:
    """Translate CLI args into a truck transaction payload."""
    return TruckTransactionPayload(
        date=datetime.fromisoformat(args.date),
        container_no=args.container_no,
        invoice_no=args.invoice_no,
        destination=args.destination,
        cost=Decimal(args.cost),
        selling_price=Decimal(args.selling_price),
        customer=args.customer,
        truck_id=args.truck_id,
        income=Decimal(args.income) if args.income is not None else None,
        pph=Decimal(args.pph),
        bon=args.bon,
        details=args.details,
        editable_by_user_until=(
            datetime.fromisoformat(args.editable_until) if args.editable_until is not None else None
        ),
        transaction_id=getattr(args, "transaction_id", None),
    )


def translate_record_misc(args: argparse.Namespace) -> AdditionalTruckTransactionPayload:
    """Translate CLI args into a miscellaneous cost payload."""
    return AdditionalTruckTransactionPayload(
        date=datetime.fromisoformat(args.date),
        details=args.details,
        cost=Decimal(args.cost),
        selling_price=Decimal(args.selling_price),
        truck_id=args.truck_id,
    )


def run_add_customer(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    customer = repository.add_customer(context, initial=args.initial, customer_id=args.customer_id)
    print(customer.customer_id)
    return 0


def run_add_truck(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    truck = repository.add_truck(context, name=args.name, truck_id=args.truck_id)
    print(truck.truck_id)
    return 0


def run_record(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the create workflow via the BLL."""
    transaction = core_logic.create_truck_transaction(context, translate_truck_transaction(args))
    print(transaction.transaction_id)
    return 0


def run_edit(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the edit workflow via the BLL."""
    core_logic.edit_truck_transaction(context, translate_truck_transaction(args))
    return 0


def run_record_misc(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    transaction = core_logic.create_additional_truck_transaction(context, translate_record_misc(args))
    print(transaction.transaction_id)
    return 0


def run_delete(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    repository.delete_truck_transaction(context, args.transaction_id)
    return 0


def run_print(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the print workflow; a failed print leaves the workbook unsaved."""
    outcome = printing.print_transactions(context, args.transaction_ids, args.doc_type, notify=print)
    return 0 if outcome.ok else PRINT_FAILED_EXIT_CODE


def run_transactions_report(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Display transactions through the customer detail projection."""
    if args.truck_id is not None:
        rows = core_logic.list_truck_transactions_for_truck(context, args.truck_id)
    elif args.customer_id is not None:
        date_range = resolve_date_range(args.start_date, args.end_date)
        rows = core_logic.list_customer_transactions(context, args.customer_id, date_range)
    else:
        rows = core_logic.list_truck_transactions(context)

    columns = views.customer_detail_columns(args.role)
    print(" | ".join(["No", *(header for _, header in columns)]))
    for view in views.build_table(rows, columns):
        print(" | ".join(view.values()))
    totals = views.table_totals(rows)
    print(f"Total: Rp{totals.cost:,} / Rp{totals.selling_price:,}")
    return 0


def run_summary_report(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    """Execute the per-truck summary report."""
    date_range = resolve_date_range(args.start_date, args.end_date)
    summary = core_logic.summarize_truck_transactions(context, date_range)
    for truck_name, totals in summary.items():
        print(f"{truck_name}: cost={totals.cost} selling_price={totals.selling_price}")
    return 0


def run_misc_report(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    rows = core_logic.list_misc_transactions_for_truck(context, args.truck_id)
    for row in rows:
        print(" | ".join(views.build_additional_row_view(row).values()))
    print(f"Total: Rp{views.additional_table_total(rows):,}")
    return 0


def run_autocomplete_report(context: runtime.RuntimeContext, args: argparse.Namespace) -> int:
    for field, values in core_logic.get_auto_complete(context).items():
        print(f"{field}: {', '.join(values)}")
    return 0


def handle_cli_error(error: Exception) -> int:
    """Convert raised exceptions into user-friendly exit codes."""
    if isinstance(error, core_logic.BusinessRuleViolation):
        log.error("%s", error)
        return 2
    if isinstance(error, FileNotFoundError):
        log.error("%s", error)
        return 3
    log.error("%s", error)
    return 1


def persist_workbook(context: runtime.RuntimeContext) -> None:
    """Persist workbook changes after successful execution."""
    try:
        runtime.persist_context(context)
    except PermissionError as error:
        raise RuntimeError(str(error)) from error


def main(argv: Sequence[str] | None = None) -> int:
    """CLI entry point that orchestrates parsing and execution."""
    parser = build_parser()
    command_table = configure_subcommands(parser)
    args = parser.parse_args(argv)
    try:
        context = load_runtime_context(getattr(args, "config", None))
        runtime.ensure_schema_version(context)
        exit_code = dispatch_command(context, args, command_table)
        if exit_code == 0 and args.command in WRITE_COMMANDS:
            persist_workbook(context)
        return exit_code
    except Exception as error:  # pragma: no cover - centralised error handler tested separately
        return handle_cli_error(error)
