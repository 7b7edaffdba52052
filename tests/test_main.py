"""Tests for main module."""

from fastapi import FastAPI

from assist_signaling import main as main_module


def test_main_runs_uvicorn_with_settings(monkeypatch) -> None:
    """Test that main hands the app to uvicorn with configured host and port."""
    calls: list[tuple[object, str, int]] = []

    def fake_run(app: object, host: str, port: int) -> None:
        calls.append((app, host, port))

    monkeypatch.setenv("PORT", "4010")
    monkeypatch.setattr(main_module.uvicorn, "run", fake_run)

    main_module.main()

    assert len(calls) == 1
    app, host, port = calls[0]
    assert isinstance(app, FastAPI)
    assert host == "0.0.0.0"  # noqa: S104
    assert port == 4010
