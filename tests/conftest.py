"""Shared pytest fixtures and utilities for Aqua Manager tests."""

from __future__ import annotations

import argparse
import sys
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional

import pytest

# Ensure source packages are importable without installation.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"

for candidate in (SRC_DIR, PROJECT_ROOT):
    candidate_str = str(candidate)
    if candidate_str not in sys.path:
        sys.path.insert(0, candidate_str)

from aqua_manager import cli, core_logic, data_manager  # noqa: E402
from setup_store import create_data_file  # noqa: E402

FIXED_MOMENT = datetime(2024, 5, 10, 9, 30, tzinfo=UTC)
_CONFIG_TEMPLATE = (
    "[System]\n"
    "DataFile = {data_file}\n"
    "BusinessName = {business_name}\n\n"
    "[Assistant]\n"
    "Model = {model}\n"
    "ApiKeyVariable = {api_key_variable}\n"
    "TimeoutSeconds = 5\n"
)


@dataclass(frozen=True)
class ConfigBundle:
    """Container bundling together config metadata for tests."""

    directory: Path
    config_path: Path
    data_file: Path
    business_name: str


@dataclass
class FakeGenerator:
    """Scripted stand-in for the AI collaborator.

    Replies are returned in order; an exception instance in ``replies`` is
    raised instead. Every call is recorded in ``calls``.
    """

    replies: List[Any] = field(default_factory=list)
    calls: List[Dict[str, Any]] = field(default_factory=list)

    def generate(
        self,
        contents: Any,
        *,
        system_instruction: Optional[str] = None,
        response_schema: Optional[Dict[str, Any]] = None,
    ) -> str:
        self.calls.append(
            {
                "contents": contents,
                "system_instruction": system_instruction,
                "response_schema": response_schema,
            }
        )
        reply = self.replies.pop(0) if self.replies else ""
        if isinstance(reply, Exception):
            raise reply
        return reply


@pytest.fixture(scope="session", autouse=True)
def _restore_sys_path() -> Iterator[None]:
    """Ensure sys.path modifications are undone after the test session."""

    original = sys.path.copy()
    try:
        yield
    finally:
        sys.path[:] = original


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return the repository root path."""

    return PROJECT_ROOT


@pytest.fixture
def data_file_factory(tmp_path: Path) -> Callable[..., Path]:
    """Factory that writes a seeded data file in a temp folder."""

    def _create_data_file(*, subdir: str | None = None, filename: str = "aqua_data.json") -> Path:
        base_dir = tmp_path if subdir is None else tmp_path / subdir
        base_dir.mkdir(parents=True, exist_ok=True)
        return create_data_file(base_dir / filename, overwrite=True)

    return _create_data_file


@pytest.fixture
def config_factory(tmp_path: Path, data_file_factory: Callable[..., Path]) -> Callable[..., ConfigBundle]:
    """Provide a callable that creates config/data file bundles on demand."""

    def _create_config(
        *,
        make_relative: bool = False,
        seed: bool = True,
        business_name: str = "Test Waters",
        model: str = "test-model",
        api_key_variable: str = "AQUA_TEST_KEY",
    ) -> ConfigBundle:
        bundle_dir = tmp_path / f"bundle_{uuid.uuid4().hex}"
        bundle_dir.mkdir(parents=True, exist_ok=True)
        if seed:
            data_file = data_file_factory(subdir=bundle_dir.name)
        else:
            data_file = bundle_dir / "aqua_data.json"
        data_file_entry = data_file.name if make_relative else str(data_file)
        config_path = bundle_dir / "config.ini"
        config_path.write_text(
            _CONFIG_TEMPLATE.format(
                data_file=data_file_entry,
                business_name=business_name,
                model=model,
                api_key_variable=api_key_variable,
            )
        )
        return ConfigBundle(
            directory=bundle_dir,
            config_path=config_path,
            data_file=data_file,
            business_name=business_name,
        )

    return _create_config


@pytest.fixture
def config_file(config_factory: Callable[..., ConfigBundle]) -> Path:
    """Convenience fixture returning only the config path."""

    return config_factory().config_path


@pytest.fixture
def runtime_context(config_file: Path) -> core_logic.RuntimeContext:
    """Load the runtime context for tests through the public API."""

    return core_logic.load_runtime_context(config_file)


# ---------------------------------------------------------------------------
# CLI layer fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_parser() -> argparse.ArgumentParser:
    """Return a fresh CLI parser instance for tests."""

    return argparse.ArgumentParser(prog="aqua-cli", description="Aqua CLI")


@pytest.fixture
def subparsers_action(
    cli_parser: argparse.ArgumentParser,
) -> argparse._SubParsersAction[argparse.ArgumentParser]:
    """Return the subparser action used to register commands."""

    return cli_parser.add_subparsers(dest="command")


@pytest.fixture
def command_spec_iterable() -> list[cli.CommandSpec]:
    """Provide a list of command specs for indexing tests."""

    def _make_spec(name: str) -> cli.CommandSpec:
        return cli.CommandSpec(
            name,
            f"{name} help",
            lambda subparsers: subparsers.add_parser(name),
            lambda *_: 0,
        )

    return [_make_spec("alpha"), _make_spec("beta"), _make_spec("gamma")]


@pytest.fixture
def fake_generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def use_generator(monkeypatch: pytest.MonkeyPatch) -> Callable[[FakeGenerator], FakeGenerator]:
    """Route the CLI's AI commands to a scripted generator."""

    def _apply(generator: FakeGenerator) -> FakeGenerator:
        monkeypatch.setattr(cli, "build_generator", lambda context: generator)
        return generator

    return _apply


# ---------------------------------------------------------------------------
# Core logic fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> data_manager.ConfigSettings:
    """Provide default configuration settings for runtime context tests."""

    return data_manager.ConfigSettings(
        data_file=tmp_path / "aqua_data.json",
        business_name="Test Waters",
    )


@pytest.fixture
def state() -> data_manager.AppState:
    """Return the seed aggregate dated at a fixed moment."""

    return data_manager.default_state(when=FIXED_MOMENT)


@pytest.fixture
def context(settings: data_manager.ConfigSettings, state: data_manager.AppState) -> core_logic.RuntimeContext:
    """Assemble a runtime context from injected settings and the seed state."""

    return core_logic.RuntimeContext(settings=settings, state=state)


@pytest.fixture
def empty_context(settings: data_manager.ConfigSettings) -> core_logic.RuntimeContext:
    return core_logic.RuntimeContext(settings=settings, state=data_manager.AppState())


@pytest.fixture
def set_fixed_datetime(monkeypatch: pytest.MonkeyPatch) -> Callable[[datetime], datetime]:
    """Patch ``core_logic.datetime`` to return a predetermined moment."""

    def _apply(moment: datetime) -> datetime:
        class _FixedDateTime:
            @staticmethod
            def now(tz=None):
                assert tz is UTC
                return moment

        monkeypatch.setattr(core_logic, "datetime", _FixedDateTime)
        return moment

    return _apply


def make_customer(
    customer_id: str = "cx",
    *,
    name: str = "Lakeside Cafe",
    price: str = "30",
    balance: str = "0",
) -> data_manager.Customer:
    """Build a customer record with sensible defaults."""

    return data_manager.Customer(
        id=customer_id,
        name=name,
        phone="9000000000",
        address="1 Harbour Rd",
        price_per_jar=Decimal(price),
        balance=Decimal(balance),
    )


@pytest.fixture
def customer_factory() -> Callable[..., data_manager.Customer]:
    return make_customer
