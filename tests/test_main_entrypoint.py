from __future__ import annotations

import runpy
import sys

import pytest

import faultline.__main__ as main_mod
from faultline import __version__


def test_main_delegates_to_the_typer_app(monkeypatch) -> None:
    calls: list[str] = []
    monkeypatch.setattr(main_mod, "app", lambda: calls.append("app"))

    main_mod.main()
    assert calls == ["app"]


def test_python_dash_m_prints_version(monkeypatch, capsys) -> None:
    monkeypatch.setattr(sys, "argv", ["faultline", "--version"])
    monkeypatch.delitem(sys.modules, "faultline.__main__", raising=False)

    with pytest.raises(SystemExit) as excinfo:
        runpy.run_module("faultline", run_name="__main__")

    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == __version__
