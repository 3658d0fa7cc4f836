import importlib
import pkgutil

import pytest

import cangkulan

MODULES = sorted(
    m.name
    for m in pkgutil.walk_packages(cangkulan.__path__, "cangkulan.")
    if not m.name.startswith("cangkulan.tests")
)


def test_walk_finds_the_core_modules():
    for name in ("cangkulan.cli", "cangkulan.orchestrator", "cangkulan.tx.submit", "cangkulan.commit_reveal.pedersen"):
        assert name in MODULES


@pytest.mark.parametrize("name", MODULES)
def test_module_imports(name):
    mod = importlib.import_module(name)
    for attr in getattr(mod, "__all__", ()):
        assert hasattr(mod, attr), f"{name}.__all__ names missing {attr}"
