"""
SSH Session Handler.
Manages the full lifecycle of a single terminal connection:
connect → authenticate → shell → disconnect.

The shell side is a small line editor: it reads one byte at a time with
the channel timeout set to ``TICK_INTERVAL`` so every timeout doubles as
a tick of the deferred-task clock.
"""
import logging
import json
import datetime
import socket

import paramiko

from config.settings import (
    SSH_BANNER, HOST_KEY_PATH, TICK_INTERVAL,
    AUTH_USER, AUTH_PASS,
)
from core.ssh_server import TerminalServer
from core.command_engine import Terminal
from core.state import LineKind


def _now() -> str:
    return datetime.datetime.now(datetime.timezone.utc).isoformat(timespec="seconds")

sys_logger = logging.getLogger("system")

# ── Control sequences ─────────────────────────────────────────────────────────
CLEAR_SCREEN = "\033[2J\033[H"
ERASE_LINE   = "\r\033[K"
ARROW_UP     = "[A"
ARROW_DOWN   = "[B"
EXIT_WORDS   = ("exit", "logout")


# ── Line editor ───────────────────────────────────────────────────────────────

class ChannelShell:
    """
    Drives one ``Terminal`` over a byte channel.

    Only OUTPUT lines of the transcript are written; input lines are
    already on screen because keystrokes are echoed as they are typed.
    """

    def __init__(self, channel, terminal: Terminal, client_ip: str = ""):
        self.channel   = channel
        self.terminal  = terminal
        self.client_ip = client_ip
        self._epoch    = terminal.transcript.epoch
        self._seen     = 0
        self._last     = ""

    # ── Screen ────────────────────────────────────────────────────────────────

    def flush(self) -> None:
        transcript = self.terminal.transcript
        reset, lines = transcript.since(self._epoch, self._seen)
        if reset:
            self.channel.send(CLEAR_SCREEN)
        out = "".join(
            line.text.replace("\n", "\r\n") + "\r\n"
            for line in lines if line.kind is LineKind.OUTPUT
        )
        if out:
            self.channel.send(out)
        self._epoch = transcript.epoch
        self._seen  = len(transcript)

    def redraw(self) -> None:
        self.channel.send(ERASE_LINE + self.terminal.prompt + self.terminal.input)

    # ── Main loop ─────────────────────────────────────────────────────────────

    def run(self) -> None:
        self.channel.settimeout(TICK_INTERVAL)
        self.flush()
        self.redraw()

        while True:
            try:
                data = self.channel.recv(1)
            except socket.timeout:
                self._on_tick()
                continue
            if not data:
                break
            if not self.feed(data.decode("utf-8", errors="ignore")):
                break

    def _on_tick(self) -> None:
        if self.terminal.tick():
            self.channel.send(ERASE_LINE)
            self.flush()
            self.redraw()

    def feed(self, ch: str) -> bool:
        """Handle one keystroke; returns False when the session should end."""
        last, self._last = self._last, ch
        t = self.terminal

        if ch == "\r" or ch == "\n":
            if ch == "\n" and last == "\r":
                return True
            return self._on_enter()

        if ch == "\x1b":
            seq = self._read(2)
            if seq == ARROW_UP:
                t.history_up()
                self.redraw()
            elif seq == ARROW_DOWN:
                t.history_down()
                self.redraw()
            return True

        if ch == "\t":
            matches = t.complete()
            if len(matches) > 1:
                self.channel.send("\r\n")
                self.flush()
            if matches:
                self.redraw()
            return True

        if ch in ("\x7f", "\x08"):
            if t.input:
                t.input = t.input[:-1]
                self.channel.send("\b \b")
            return True

        if ch == "\x03":
            if t.interrupt():
                self.channel.send(ERASE_LINE)
                self.flush()
            else:
                self.channel.send("^C\r\n")
            self.redraw()
            return True

        if ch == "\x04":
            if t.input:
                return True
            self.channel.send("\r\nlogout\r\n")
            return False

        if ch.isprintable():
            t.input += ch
            self.channel.send(ch)
        return True

    def _on_enter(self) -> bool:
        t = self.terminal
        self.channel.send("\r\n")
        if t.input.strip() in EXIT_WORDS:
            self.channel.send("logout\r\n")
            return False
        t.submit()
        self.flush()
        self.redraw()
        return True

    def _read(self, n: int) -> str:
        buf = ""
        for _ in range(n):
            try:
                data = self.channel.recv(1)
            except socket.timeout:
                break
            if not data:
                break
            buf += data.decode("utf-8", errors="ignore")
        return buf


# ── Session handler ───────────────────────────────────────────────────────────

def handle_client(
    client_sock,
    addr,
    username: str = AUTH_USER,
    password: str = AUTH_PASS,
):
    """
    Handle one inbound SSH connection.

    Parameters
    ----------
    client_sock : socket
    addr        : (ip, port) tuple
    username    : expected username (empty = accept all)
    password    : expected password (empty = accept all)
    """
    client_ip = addr[0]
    port      = addr[1]

    _log_event("CONNECT", client_ip, port=port)

    transport = None
    try:
        # Load or generate host key
        try:
            host_key = paramiko.RSAKey(filename=HOST_KEY_PATH)
        except FileNotFoundError:
            host_key = paramiko.RSAKey.generate(2048)
            host_key.write_private_key_file(HOST_KEY_PATH)
            sys_logger.info(json.dumps({
                "event": "host_key_generated", "path": HOST_KEY_PATH,
            }))

        transport = paramiko.Transport(client_sock)
        transport.local_version = SSH_BANNER
        transport.add_server_key(host_key)

        server = TerminalServer(client_ip, username, password)
        transport.start_server(server=server)

        channel = transport.accept(30)
        if channel is None:
            _log_event("NO_CHANNEL", client_ip)
            return

        server.event.wait(10)
        _log_event("SHELL", client_ip, username=server.username)

        ChannelShell(channel, Terminal(), client_ip).run()

    except (paramiko.SSHException, OSError) as exc:
        _log_event("ERROR", client_ip, error=str(exc))
    finally:
        if transport:
            transport.close()
        client_sock.close()
        _log_event("DISCONNECT", client_ip)


def _log_event(event: str, ip: str, **kwargs):
    """Emit a structured JSON log entry to the system log."""
    entry = {
        "timestamp":  _now(),
        "event_type": f"session_{event.lower()}",
        "source_ip":  ip,
        **kwargs,
    }
    sys_logger.info(json.dumps(entry))
