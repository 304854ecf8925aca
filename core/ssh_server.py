"""
Paramiko SSH Server Interface.
Handles channel negotiation and authentication for terminal sessions.
"""
import threading
import logging
import json
import datetime

import paramiko


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")

# ── System logger (handlers attached by main.py) ──────────────────────────────
sys_logger = logging.getLogger("system")


class TerminalServer(paramiko.ServerInterface):
    """
    Paramiko server interface that:
    * Accepts only password auth
    * Logs every login attempt
    * Optionally enforces a specific username/password (or accepts all)
    """

    def __init__(self, client_ip: str, valid_user: str = "", valid_pass: str = ""):
        self.client_ip  = client_ip
        self.valid_user = valid_user
        self.valid_pass = valid_pass
        self.username   = None
        self.event      = threading.Event()

    # ── Channel ───────────────────────────────────────────────────────────────

    def check_channel_request(self, kind, chanid):
        if kind == "session":
            return paramiko.OPEN_SUCCEEDED
        return paramiko.OPEN_FAILED_ADMINISTRATIVELY_PROHIBITED

    def get_allowed_auths(self, username):
        return "password"

    # ── Authentication ────────────────────────────────────────────────────────

    def check_auth_password(self, username: str, password: str):
        entry = {
            "timestamp":  _now(),
            "event_type": "ssh_auth_attempt",
            "source_ip":  self.client_ip,
            "username":   username,
        }

        if self.valid_user and self.valid_pass:
            if username == self.valid_user and password == self.valid_pass:
                self.username = username
                sys_logger.info(json.dumps({**entry, "result": "SUCCESS"}))
                return paramiko.AUTH_SUCCESSFUL
            sys_logger.info(json.dumps({**entry, "result": "FAILED"}))
            return paramiko.AUTH_FAILED

        # Open mode – accept everything but still log the attempt
        self.username = username
        sys_logger.info(json.dumps({**entry, "result": "ACCEPT_ALL"}))
        return paramiko.AUTH_SUCCESSFUL

    # ── PTY / shell ───────────────────────────────────────────────────────────

    def check_channel_pty_request(self, channel, term, width, height,
                                   pixelwidth, pixelheight, modes):
        return True

    def check_channel_shell_request(self, channel):
        self.event.set()
        return True
