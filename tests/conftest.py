"""Shared test fixtures."""

from __future__ import annotations

import pytest

from fakes import FakeToolchain

ENV_VARS = (
    "HOST",
    "TARGET",
    "PROFILE",
    "OUT_DIR",
    "NUM_JOBS",
    "LLVM_SRC_REVISION",
    "LLVM_SRC_DIR",
    "LLVM_SRC_REPOSITORY",
    "LLVM_SRC_COMPONENTS",
    "LLVM_SRC_TARGETS",
    "LLVM_SRC_SHARED",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def toolchain() -> FakeToolchain:
    """Provide a recording runner that simulates git, cmake and ninja."""
    return FakeToolchain()
