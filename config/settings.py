"""
Central configuration for the web terminal.
All settings can be overridden via environment variables.
"""
import os

# ── SSH surface ───────────────────────────────────────────────────────────────
SSH_BANNER   = os.getenv("SSH_BANNER",   "SSH-2.0-OpenSSH_8.2p1 WebTerminal-2.0.0")
HOST_KEY_PATH= os.getenv("HOST_KEY_PATH","server.key")
BIND_HOST    = os.getenv("BIND_HOST",    "0.0.0.0")
BIND_PORT    = int(os.getenv("BIND_PORT", "2222"))

# Auth credentials – leave both empty ("") to accept any login
AUTH_USER    = os.getenv("AUTH_USER",    "")
AUTH_PASS    = os.getenv("AUTH_PASS",    "")

# ── HTTP surface ──────────────────────────────────────────────────────────────
API_HOST     = os.getenv("API_HOST",     "127.0.0.1")
API_PORT     = int(os.getenv("API_PORT", "5000"))

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_DIR           = os.getenv("LOG_DIR",           "logs")
CMD_AUDIT_LOG     = os.path.join(LOG_DIR, "cmd_audits.log")
SYSTEM_LOG        = os.path.join(LOG_DIR, "system.log")
LOG_MAX_BYTES     = int(os.getenv("LOG_MAX_BYTES",    "5000000"))   # 5 MB
LOG_BACKUP_COUNT  = int(os.getenv("LOG_BACKUP_COUNT", "5"))

# ── Terminal identity ─────────────────────────────────────────────────────────
TERMINAL_NAME    = os.getenv("TERMINAL_NAME",    "WebTerminal")
TERMINAL_VERSION = os.getenv("TERMINAL_VERSION", "2.0.0")
DEFAULT_USER     = os.getenv("DEFAULT_USER",     "guest")

BANNER = [
    f"Web Terminal v{TERMINAL_VERSION} - Full Command Support",
    'Type "help" for available commands',
]

DEFAULT_ENV = {
    "PATH":  "~/.local/bin:/usr/local/bin:/usr/bin:/bin",
    "USER":  DEFAULT_USER,
    "HOME":  "~",
    "SHELL": "/bin/bash",
}

DEFAULT_PACKAGES = ["apt:base-system"]

# ── Task simulation ───────────────────────────────────────────────────────────
# Granularity of the host clock driving deferred tasks, in seconds.
TICK_INTERVAL = float(os.getenv("TICK_INTERVAL", "0.1"))

# Per-command tick interval, in seconds.
TASK_INTERVALS = {
    "wget":        0.2,
    "curl":        0.5,
    "ping":        1.0,
    "winget":      0.4,
    "apt-update":  1.0,
    "apt-install": 1.25,
    "npm-init":    0.5,
    "npm-install": 1.2,
    "pip-install": 1.8,
}

# Unset → fresh randomness per terminal; set → reproducible simulations.
_seed = os.getenv("RANDOM_SEED")
RANDOM_SEED = int(_seed) if _seed else None
