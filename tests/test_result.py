"""Unit tests for the lightweight Result utilities."""

from __future__ import annotations

import asyncio

import pytest

from studyblocks.core.result import Err, Ok, Result, capture, err, ok


def test_ok_map_and_flat_map() -> None:
    """`Ok` should map/flat_map and keep values typed."""
    r: Result[int, str] = ok(10)
    r2 = r.map(lambda x: x + 5).flat_map(lambda x: ok(x * 2))
    assert r2.is_ok() and r2.unwrap() == 30


def test_err_propagation_and_map_err() -> None:
    """`Err` should propagate through map/flat_map and allow mapping the error."""
    r: Result[int, str] = err("boom")
    assert r.is_err()
    assert r.map(lambda x: x + 1).is_err()
    r2 = r.map_err(lambda e: f"{e}!")
    assert isinstance(r2, Err) and r2.unwrap_err() == "boom!"


def test_unwrap_variants_and_defaults() -> None:
    assert ok("x").unwrap() == "x"
    assert err("e").unwrap_or("fallback") == "fallback"
    with pytest.raises(RuntimeError):
        err("e").unwrap()
    with pytest.raises(RuntimeError):
        ok(1).unwrap_err()


def test_inspect_err_only_fires_on_err() -> None:
    seen: list[str] = []
    ok(1).inspect_err(seen.append)
    err("bad").inspect_err(seen.append)
    assert seen == ["bad"]


def test_capture_wraps_value_and_exception() -> None:
    async def good() -> int:
        return 3

    async def bad() -> int:
        raise LookupError("gone")

    async def scenario() -> tuple[Result[int, Exception], Result[int, Exception]]:
        return await capture(good()), await capture(bad())

    first, second = asyncio.run(scenario())
    assert isinstance(first, Ok) and first.value == 3
    assert isinstance(second, Err) and isinstance(second.error, LookupError)
