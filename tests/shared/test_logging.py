from __future__ import annotations

from sqlitex.shared.logging import get_logger


def test_logger_info_routes_to_stderr(capfd) -> None:
    logger = get_logger()

    logger.info("structured log to stderr")

    captured = capfd.readouterr()
    assert "structured log to stderr" in captured.err
    assert "structured log to stderr" not in captured.out


def test_debug_requires_verbose(capfd) -> None:
    get_logger().debug("hidden detail")
    get_logger(verbose=True).debug("visible detail")

    captured = capfd.readouterr()
    assert "hidden detail" not in captured.err
    assert "visible detail" in captured.err


def test_child_scopes_prefix_messages(capfd) -> None:
    logger = get_logger(scope="server").child("main")

    logger.warning("queue [draining]")

    captured = capfd.readouterr()
    assert logger.scope == "server:main"
    assert "[server:main] queue [draining]" in captured.err
