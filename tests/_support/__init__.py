"""
Test support utilities for rebound tests.

Helpers that don't fit as pytest fixtures but are useful across test files.
"""

from __future__ import annotations

from typing import Any

from tests._support.fault_injection import (
    AsyncScriptedOperation,
    CountingOperation,
    FaultInjectedError,
    RecordingBackoff,
    ScriptedOperation,
    StallingOperation,
)


def assert_dict_subset(actual: dict[str, Any], expected: dict[str, Any], path: str = "") -> None:
    """
    Assert that expected is a subset of actual (recursive).

    Lists are matched item by item over the length of ``expected``.
    """
    for key, expected_value in expected.items():
        current_path = f"{path}.{key}" if path else key

        assert key in actual, f"Missing key at {current_path}"
        actual_value = actual[key]

        if isinstance(expected_value, dict) and isinstance(actual_value, dict):
            assert_dict_subset(actual_value, expected_value, current_path)
        elif isinstance(expected_value, list) and isinstance(actual_value, list):
            assert len(actual_value) >= len(expected_value), (
                f"List at {current_path} too short: "
                f"expected at least {len(expected_value)}, got {len(actual_value)}"
            )
            for i, (exp_item, act_item) in enumerate(zip(expected_value, actual_value)):
                if isinstance(exp_item, dict) and isinstance(act_item, dict):
                    assert_dict_subset(act_item, exp_item, f"{current_path}[{i}]")
                else:
                    assert act_item == exp_item, (
                        f"Mismatch at {current_path}[{i}]: expected {exp_item!r}, got {act_item!r}"
                    )
        else:
            assert actual_value == expected_value, (
                f"Mismatch at {current_path}: expected {expected_value!r}, got {actual_value!r}"
            )


__all__ = [
    "AsyncScriptedOperation",
    "CountingOperation",
    "FaultInjectedError",
    "RecordingBackoff",
    "ScriptedOperation",
    "StallingOperation",
    "assert_dict_subset",
]
