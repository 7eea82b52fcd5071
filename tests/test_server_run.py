"""Tests for the uvicorn runner option parsing."""

from __future__ import annotations

import pytest

from careledger.server.run import read_options


def test_defaults():
    options = read_options({})
    assert (options.host, options.port, options.reload, options.duration) == (
        "127.0.0.1",
        8000,
        False,
        None,
    )


def test_duration_and_port_from_environment():
    options = read_options({"CARELEDGER_SERVER_PORT": "9100", "CARELEDGER_SERVER_DURATION": "2.5"})
    assert options.port == 9100
    assert options.duration == 2.5


@pytest.mark.parametrize(
    "environ",
    [
        {"CARELEDGER_SERVER_DURATION": "soon"},
        {"CARELEDGER_SERVER_DURATION": "0"},
        {"CARELEDGER_SERVER_DURATION": "5", "CARELEDGER_SERVER_RELOAD": "1"},
    ],
)
def test_invalid_combinations_exit(environ):
    with pytest.raises(SystemExit):
        read_options(environ)
