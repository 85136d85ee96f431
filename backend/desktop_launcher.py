from __future__ import annotations

import argparse
import logging
import socket
import threading
import time
import webbrowser

import httpx
import uvicorn

from stocksim.main import app as api_app


def _is_port_available(host: str, port: int) -> bool:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind((host, port))
        except OSError:
            return False
    return True


def _find_port(host: str, preferred: int, span: int = 20) -> int:
    if _is_port_available(host, preferred):
        return preferred

    for port in range(preferred + 1, preferred + span + 1):
        if _is_port_available(host, port):
            return port

    return preferred


def _open_browser_when_ready(url: str, health_url: str, timeout_sec: int = 30) -> None:
    def _worker() -> None:
        deadline = time.time() + timeout_sec
        while time.time() < deadline:
            try:
                httpx.get(health_url, timeout=2.0).raise_for_status()
                break
            except httpx.HTTPError:
                time.sleep(0.4)
        webbrowser.open(url)

    threading.Thread(target=_worker, daemon=True).start()


def main() -> None:
    parser = argparse.ArgumentParser(description="Stock simulator launcher")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8010)
    parser.add_argument("--no-browser", action="store_true")
    parser.add_argument("--log-level", default="info", choices=["debug", "info", "warning", "error"])
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper()),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logger = logging.getLogger("stocksim.launcher")

    host = args.host
    selected_port = _find_port(host, args.port)
    if selected_port != args.port:
        logger.warning(f"Port {args.port} is busy, fallback to {selected_port}.")

    base_url = f"http://{host}:{selected_port}"
    health_url = f"{base_url}/health"

    if not args.no_browser:
        _open_browser_when_ready(f"{base_url}/docs", health_url)

    logger.info(f"Starting stock simulator on {base_url}")
    uvicorn.run(
        api_app,
        host=host,
        port=selected_port,
        log_level=args.log_level,
        loop="asyncio",
        http="h11",
    )


if __name__ == "__main__":
    main()
