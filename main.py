#!/usr/bin/env python3
"""
Web Terminal – Application Entry Point
=======================================
Usage:
    python main.py [--host HOST] [--port PORT] [--user USER] [--pass PASS]
                   [--open]            # accept any credentials
                   [--api]             # also start the HTTP/SSE terminal API
                   [--api-port PORT]
"""
import argparse
import os
import socket
import sys
import threading
import logging
import json
import datetime
from logging.handlers import RotatingFileHandler

from config.settings import (
    BIND_HOST, BIND_PORT, AUTH_USER, AUTH_PASS,
    API_HOST, API_PORT,
    LOG_DIR, SYSTEM_LOG, CMD_AUDIT_LOG, LOG_MAX_BYTES, LOG_BACKUP_COUNT,
)
from core.session import handle_client

_sys = logging.getLogger("system")


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")


# ── Logger setup ──────────────────────────────────────────────────────────────

def _make_logger(name: str, path: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger   # already configured
    logger.setLevel(logging.INFO)
    h = RotatingFileHandler(path, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT)
    h.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(h)
    return logger


def setup_logging() -> None:
    os.makedirs(LOG_DIR, exist_ok=True)
    _make_logger("commands", CMD_AUDIT_LOG)
    sys_logger = _make_logger("system", SYSTEM_LOG)

    # Also echo to stdout
    stdout = logging.StreamHandler(sys.stdout)
    stdout.setFormatter(logging.Formatter("%(asctime)s | %(message)s"))
    sys_logger.addHandler(stdout)


# ── SSH entry point ───────────────────────────────────────────────────────────

def start_server(
    host: str     = BIND_HOST,
    port: int     = BIND_PORT,
    username: str = AUTH_USER,
    password: str = AUTH_PASS,
):
    """Bind the SSH listener and spawn a thread per connection."""

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
    except PermissionError:
        print(f"[!] Cannot bind to port {port}. Try a port above 1024.")
        sys.exit(1)

    sock.listen(100)

    mode = "open" if not username else "credential-enforced"
    _sys.info(json.dumps({
        "event": "server_start",
        "host": host, "port": port, "mode": mode,
        "timestamp": _now(),
    }))
    print(f"[*] SSH terminal listening on {host}:{port}  [{mode}]")
    print(f"[*] Logs → {LOG_DIR}/")
    print("[*] Press Ctrl+C to stop.\n")

    while True:
        try:
            client_sock, addr = sock.accept()
            t = threading.Thread(
                target=handle_client,
                args=(client_sock, addr, username, password),
                daemon=True,
            )
            t.start()
        except KeyboardInterrupt:
            print("\n[*] Shutting down.")
            _sys.info(json.dumps({
                "event": "server_stop",
                "timestamp": _now(),
            }))
            break
        except OSError as exc:
            print(f"[!] Accept error: {exc}")

    sock.close()


# ── CLI ───────────────────────────────────────────────────────────────────────

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Virtual shell terminal over SSH and HTTP")
    parser.add_argument("--host",     default=BIND_HOST, help="Bind address")
    parser.add_argument("--port",     default=BIND_PORT, type=int, help="Bind port")
    parser.add_argument("--user",     default=AUTH_USER, help="Expected username")
    parser.add_argument("--pass",     dest="password", default=AUTH_PASS, help="Expected password")
    parser.add_argument("--open",     action="store_true", help="Accept all credentials")
    parser.add_argument("--api",      action="store_true", help="Also start the HTTP terminal API")
    parser.add_argument("--api-host", default=API_HOST, help=f"API bind address (default {API_HOST})")
    parser.add_argument("--api-port", default=API_PORT, type=int, help=f"API port (default {API_PORT})")
    return parser


def main():
    args = build_parser().parse_args()
    setup_logging()

    username = "" if args.open else args.user
    password = "" if args.open else args.password

    if args.api:
        from web.app import start_api
        api_thread = threading.Thread(
            target=start_api,
            kwargs={"host": args.api_host, "port": args.api_port},
            daemon=True,
        )
        api_thread.start()

    start_server(
        host=args.host,
        port=args.port,
        username=username,
        password=password,
    )


if __name__ == "__main__":
    main()
