from __future__ import annotations

import json
import logging
import socket
import threading
import time
import urllib.error
import urllib.request

from ..config import AppConfig
from ..errors import TimerStateError

logger = logging.getLogger(__name__)

OPEN_STATUSES = {"running", "capturing"}


def launch_desktop(config: AppConfig | None = None) -> int:
    try:
        import uvicorn
        import webview
    except ImportError as exc:
        print(f"Desktop window unavailable: missing dependency (uvicorn/pywebview). {exc}")
        print("Install it with: pip install 'intervallog[gui]'")
        return 2

    from ..api.app import create_default_app

    app = create_default_app(config)
    service = app.state.timer_service

    host = "127.0.0.1"
    port = _find_free_port()
    server = uvicorn.Server(uvicorn.Config(app, host=host, port=port, log_level="warning"))
    thread = threading.Thread(target=server.run, daemon=True)
    thread.start()

    if not _wait_for_api(host, port, timeout_sec=12.0):
        print("Desktop window failed: the local API did not become ready in time.")
        server.should_exit = True
        return 2

    try:
        window = webview.create_window("IntervalLog", f"http://{host}:{port}", min_size=(720, 560))
        window.events.closing += lambda: allow_close(service)
        webview.start(debug=False)
    except Exception as exc:
        logger.exception("Desktop window failed")
        print(f"Desktop window failed: {exc}")
        return 2
    finally:
        server.should_exit = True
        thread.join(timeout=2.0)

    return 0


def finish_open_session(service) -> str:
    """End a session that is still running when the window closes, so its logs get saved."""
    status = service.state().status
    if status not in OPEN_STATUSES:
        return status
    logger.info("Window closing with an open session; ending it")
    try:
        state = service.end()
    except TimerStateError:
        logger.exception("Session ended concurrently while the window was closing")
        state = service.state()
    if state.status == "error":
        _report_unsaved(service, state)
    return state.status


def allow_close(service) -> bool:
    """Window closing handler. Returning False keeps the window open.

    A save that fails while closing keeps the window open once, so the retry and
    discard actions stay reachable. A second close goes through.
    """
    before = service.state().status
    status = finish_open_session(service)
    if status != "error":
        return True
    if before != "error":
        return False
    logger.warning("Closing the window with an unsaved session; its logs are lost")
    return True


def _report_unsaved(service, state) -> None:
    outcome = state.outcome or {}
    stage = outcome.get("stage", "saving")
    folder = (state.session or {}).get("folder", "")
    target = service.store.root / folder if folder else service.store.root
    logger.error(
        "Session was not saved while closing the window: %s failed (%s). Target folder: %s",
        stage,
        outcome.get("error", state.detail),
        target,
    )
    print(f"IntervalLog: session not saved ({stage} failed). Retry or discard it in the window. Folder: {target}")


def _find_free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


def _wait_for_api(host: str, port: int, timeout_sec: float) -> bool:
    deadline = time.monotonic() + timeout_sec
    url = f"http://{host}:{port}/api/v1/health"
    while time.monotonic() < deadline:
        try:
            with urllib.request.urlopen(url, timeout=1.0) as resp:
                if json.load(resp).get("status") == "ok":
                    return True
        except (urllib.error.URLError, TimeoutError, ValueError):
            pass
        time.sleep(0.2)
    return False
