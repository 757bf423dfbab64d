import asyncio
import os

import pytest


def pytest_configure(config):
    # Register the markers used across zkbridge without requiring external plugins.
    config.addinivalue_line(
        "markers", "asyncio: mark test as requiring asyncio event loop"
    )
    config.addinivalue_line(
        "markers", "slow: pure-Python pairing checks (deselect with ZKBRIDGE_SKIP_SLOW=1)"
    )


@pytest.hookimpl(tryfirst=True)
def pytest_collection_modifyitems(config, items):
    """
    Skip the py_ecc pairing suites when ZKBRIDGE_SKIP_SLOW is set.

    Each optimal-ate pairing in pure Python takes around a second, so quick
    local runs can opt out of them.
    """
    if os.getenv("ZKBRIDGE_SKIP_SLOW", "").strip().lower() not in {"1", "true", "yes", "on"}:
        return
    slow_skip = pytest.mark.skip(reason="ZKBRIDGE_SKIP_SLOW set")
    for item in items:
        if item.get_closest_marker("slow") is not None:
            item.add_marker(slow_skip)


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    """
    Provide a minimal asyncio runner for tests marked with @pytest.mark.asyncio when
    pytest-asyncio isn't available in the environment.
    """
    if pyfuncitem.get_closest_marker("asyncio") is None:
        return None

    test_func = pyfuncitem.obj
    if asyncio.iscoroutinefunction(test_func):
        # Only pass fixtures that correspond to the function signature.
        argnames = getattr(pyfuncitem, "_fixtureinfo", None)
        wanted = set(getattr(argnames, "argnames", []) or [])
        kwargs = {k: v for k, v in pyfuncitem.funcargs.items() if k in wanted}
        asyncio.run(test_func(**kwargs))
        return True
    return None
