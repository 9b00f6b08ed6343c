from __future__ import annotations

import logging
import warnings

from safemap import possibly, quietly, safe_map, safely


def _parse(text):
    return int(text)


def test_safely_captures_errors() -> None:
    wrapped = safely(_parse, otherwise=-1)
    good = wrapped("12")
    assert good.ok and good.result == 12 and good.error is None
    bad = wrapped("x")
    assert not bad.ok
    assert bad.result == -1
    assert isinstance(bad.error, ValueError)
    assert wrapped.__name__ == "_parse"


def test_possibly_returns_fallback() -> None:
    wrapped = possibly(_parse, otherwise=None)
    assert [wrapped(value) for value in ["1", "two", "3"]] == [1, None, 3]


def test_possibly_inside_a_run(settings) -> None:
    result = safe_map(["1", "?", "3"], possibly(_parse, 0), settings=settings)
    assert result == [1, 0, 3]


def test_quietly_captures_output_warnings_and_logs() -> None:
    def noisy(value):
        print("working on", value)
        warnings.warn("careful")
        logging.getLogger("noisy").warning("logged %s", value)
        return value * 2

    captured = quietly(noisy)(21)
    assert captured.result == 42
    assert captured.output == "working on 21\n"
    assert captured.warnings == ["careful"]
    assert "logged 21" in captured.messages


def test_quietly_propagates_errors() -> None:
    def broken():
        raise KeyError("missing")

    wrapped = quietly(broken)
    try:
        wrapped()
    except KeyError:
        pass
    else:  # pragma: no cover
        raise AssertionError("KeyError expected")
    assert not any(
        type(handler).__name__ == "_ListHandler"
        for handler in logging.getLogger().handlers
    )
