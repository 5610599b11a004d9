"""Shared pytest fixtures and utilities for truck ledger tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Callable, Iterator, Optional
from unittest.mock import Mock

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from truck_ledger import constants, data_manager, runtime  # noqa: E402
from truck_ledger.commands import TruckTransactionPayload  # noqa: E402
from truck_ledger.setup_excel import create_master_workbook  # noqa: E402

DEFAULT_SCHEMA_VERSION = constants.EXPECTED_SCHEMA_VERSION
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "CompanyName = {company_name}\n"
    "SchemaVersion = {schema_version}\n\n"
    "[Printing]\n"
    "OutputDir = {print_dir}\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    workbook_path: Path
    print_dir: Path
    schema_version: str
    company_name: str


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture
def workbook_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that creates an initialized master workbook in a temp folder."""

    def _create_workbook(*, subdir: str | None = None, filename: str = "truck_ledger.xlsx") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        workbook_path = base_dir / filename
        create_master_workbook(workbook_path, overwrite=True)
        return workbook_path

    return _create_workbook


@pytest.fixture
def master_workbook_path(workbook_factory: Callable[..., Path]) -> Path:
    """Return a fresh master workbook ready for use in a test."""

    return workbook_factory(subdir=f"workbook_{uuid.uuid4().hex}")


@pytest.fixture
def config_factory(tmp_path: Path, workbook_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/workbook bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        company_name: str = "Test Trucking",
        schema_version: str = DEFAULT_SCHEMA_VERSION,
    ) -> ConfigBundle:
        bundle_dir_name = f"bundle_{uuid.uuid4().hex}"
        bundle_dir = tmp_path / bundle_dir_name
        workbook_path = workbook_factory(subdir=bundle_dir_name)
        print_dir = bundle_dir / "prints"
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=workbook_path.name if make_relative else str(workbook_path),
                company_name=company_name,
                schema_version=schema_version,
                print_dir="prints" if make_relative else str(print_dir),
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            workbook_path=workbook_path,
            print_dir=print_dir,
            schema_version=schema_version,
            company_name=company_name,
        )

    return _create_config


@pytest.fixture
def config_bundle(config_factory: Callable[..., ConfigBundle]) -> ConfigBundle:
    return config_factory()


@pytest.fixture
def config_file(config_bundle: ConfigBundle) -> Path:
    """Convenience fixture returning only the config path."""

    return config_bundle.config_path


@pytest.fixture
def runtime_context(config_file: Path) -> runtime.RuntimeContext:
    """Load a real runtime context backed by a temporary workbook."""

    context = runtime.load_runtime_context(config_file)
    runtime.ensure_schema_version(context)
    return context


# ---------------------------------------------------------------------------
# Mocked context fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "truck_ledger.xlsx",
        company_name="Test Trucking",
        schema_version=constants.EXPECTED_SCHEMA_VERSION,
        print_dir=tmp_path / "prints",
    )


@pytest.fixture
def workbook() -> Mock:
    """Return a mock workbook object for business logic tests."""

    return Mock(name="workbook")


@pytest.fixture
def context(settings: data_manager.ConfigSettings, workbook: Mock) -> runtime.RuntimeContext:
    """Assemble a runtime context from injected settings and workbook mocks."""

    return runtime.RuntimeContext(settings=settings, workbook=workbook)


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="truck-ledger", description="Truck ledger CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def make_transaction_row(
    transaction_id: str = "TT1",
    *,
    truck_id: str = "T1",
    cost: str = "0",
    selling_price: str = "0",
    income: Optional[str] = None,
    date_iso: str = "2025-03-10T00:00:00",
    customer: data_manager.CustomerRef = data_manager.CustomerRef("C1", "ABC"),
    is_printed_bon: bool = False,
    is_printed_invoice: bool = False,
) -> data_manager.TruckTransactionRow:
    """Build a stored truck transaction with sensible defaults."""

    return data_manager.TruckTransactionRow(
        transaction_id=transaction_id,
        date_iso=date_iso,
        container_no="CONT-001",
        invoice_no="INV-001",
        destination="Tanjung Priok",
        cost=Decimal(cost),
        selling_price=Decimal(selling_price),
        income=Decimal(income) if income is not None else None,
        pph=Decimal("0"),
        customer=customer,
        bon="B-1",
        details="",
        truck_id=truck_id,
        is_printed_bon=is_printed_bon,
        is_printed_invoice=is_printed_invoice,
        editable_by_user_until=None,
    )


def make_payload(customer="ABC", **overrides) -> TruckTransactionPayload:
    """Build a truck transaction payload as an operator would submit it."""

    values = dict(
        date=date(2025, 3, 10),
        container_no="CONT-001",
        invoice_no="INV-001",
        destination="Tanjung Priok",
        cost=Decimal("100"),
        selling_price=Decimal("150"),
        customer=customer,
        truck_id="T1",
    )
    values.update(overrides)
    return TruckTransactionPayload(**values)


@pytest.fixture
def transaction_row_factory() -> Callable[..., data_manager.TruckTransactionRow]:
    return make_transaction_row


@pytest.fixture
def payload_factory() -> Callable[..., TruckTransactionPayload]:
    return make_payload
