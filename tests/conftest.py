"""
Pytest configuration and shared fixtures for all simdgen tests.

The parser builds its Earley tables once; the registry and backend are
stateless between lowerings, so all of them are shared per session.
"""

import sys
import pytest
from pathlib import Path

ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(ROOT / "src"))
sys.path.insert(0, str(ROOT))

from simdgen.backends.c import CBackend
from simdgen.compiler.driver import CompilerDriver
from simdgen.profiles.registry import ProfileRegistry
from tests.test_utils import shared_parser


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests of a single component")
    config.addinivalue_line("markers", "integration: end-to-end lowering through the driver")
    config.addinivalue_line("markers", "slow: tests that lower every registered profile")


# =============================================================================
# Session-scoped fixtures (shared across all tests)
# =============================================================================

@pytest.fixture(scope="session")
def registry():
    """The frozen default profile catalog."""
    return ProfileRegistry.default()


@pytest.fixture(scope="session")
def parser():
    """Session-scoped parser; grammar construction is the expensive part."""
    return shared_parser()


@pytest.fixture(scope="session")
def backend():
    return CBackend()


@pytest.fixture(scope="session")
def driver():
    """Compiler driver over the default registry (stateless, safe to share)."""
    return CompilerDriver()


# =============================================================================
# Function-scoped fixtures
# =============================================================================

@pytest.fixture
def kernel_file(tmp_path):
    """Write kernel source to a temporary .go file and return its path."""
    def _write(source: str, name: str = "kernel.go") -> Path:
        path = tmp_path / name
        path.write_text(source, encoding="utf-8")
        return path
    return _write
