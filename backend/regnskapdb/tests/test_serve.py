from __future__ import annotations

import logging

import pytest

from regnskapdb import serve


@pytest.fixture()
def uvicorn_calls(monkeypatch):
    calls = []
    monkeypatch.setattr(serve.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))
    monkeypatch.delenv("SSL_CERTFILE", raising=False)
    monkeypatch.delenv("SSL_KEYFILE", raising=False)
    return calls


@pytest.mark.parametrize("value", ["true", "enabled", "1"])
def test_warns_when_every_worker_would_run_a_scheduler(monkeypatch, caplog, uvicorn_calls, value):
    monkeypatch.setenv("WEB_CONCURRENCY", "4")
    monkeypatch.setenv("TASK_SCHEDULER_ENABLED", value)

    with caplog.at_level(logging.WARNING, logger="regnskapdb.serve"):
        serve.main()

    assert any("Multiple workers" in record.getMessage() for record in caplog.records)
    assert uvicorn_calls[0][1]["workers"] == 4


def test_no_warning_with_scheduler_disabled(monkeypatch, caplog, uvicorn_calls):
    monkeypatch.setenv("WEB_CONCURRENCY", "4")
    monkeypatch.setenv("TASK_SCHEDULER_ENABLED", "false")

    with caplog.at_level(logging.WARNING, logger="regnskapdb.serve"):
        serve.main()

    assert not any("Multiple workers" in record.getMessage() for record in caplog.records)
    assert uvicorn_calls[0][0] == "regnskapdb.main:app"


def test_tls_requires_both_files(monkeypatch, uvicorn_calls):
    monkeypatch.setenv("SSL_CERTFILE", "/etc/ssl/cert.pem")

    with pytest.raises(RuntimeError):
        serve.main()
    assert uvicorn_calls == []
