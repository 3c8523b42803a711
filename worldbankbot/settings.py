"""
This module contains the configuration settings for the WorldBankBot service.
It defines paths, service metadata, supervisor tuning and logging options.
It is used throughout the application to ensure consistent settings and paths.
"""

import os
import sys
import pathlib
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv(override=True)

#* --- Core Paths ---
# Runtime root. Defaults to the directory the service is launched from.
BASE_DIR = pathlib.Path(os.getenv("WBBOT_HOME", os.getcwd())).resolve()
RUN_DIR = pathlib.Path(os.getenv("WBBOT_RUN_DIR", str(BASE_DIR / "run")))
LOGS_DIR = pathlib.Path(os.getenv("WBBOT_LOGS_DIR", str(BASE_DIR / "logs")))

#* --- Runtime File Paths ---
PID_FILE_PATH = RUN_DIR / "service.pid"
OVERRIDES_JSON_PATH = RUN_DIR / "overrides.json"
SHUTDOWN_SIGNAL_PATH = RUN_DIR / "shutdown.signal"

#* --- Service Descriptor ---
SERVICE_NAME = os.getenv("SERVICE_NAME", "WorldBankBot")
SERVICE_DISPLAY_NAME = os.getenv("SERVICE_DISPLAY_NAME", "WorldBankBot")
SERVICE_DESCRIPTION = os.getenv("SERVICE_DESCRIPTION", "WorldBank Twitter Bot")
SERVICE_RUN_AS = os.getenv("SERVICE_RUN_AS", "root")
SYSTEMD_UNIT_DIR = pathlib.Path(os.getenv("SYSTEMD_UNIT_DIR", "/etc/systemd/system"))
# Delay before the OS service manager restarts the whole process after a fatal exit.
SYSTEMD_RESTART_SEC = int(os.getenv("SYSTEMD_RESTART_SEC", "60"))

#* --- Worker ---
PYTHON_EXECUTABLE = os.getenv("PYTHON_EXECUTABLE", sys.executable)
# Import path of a callable returning a worker, e.g. "mybot.service:Bot".
WORKER_FACTORY = os.getenv("WORKER_FACTORY", "")
# Command line of the bot process used by the default process worker.
BOT_COMMAND = os.getenv("BOT_COMMAND", "")
BOT_WORKING_DIR = pathlib.Path(os.getenv("BOT_WORKING_DIR", str(BASE_DIR)))

#* --- Supervisor Settings ---
MAX_IMMEDIATE_RESTARTS = 1
RESTART_DELAY_SECONDS = 0.0
RESTART_RESET_PERIOD = None    # seconds of healthy runtime that clear the restart count
STOP_TIMEOUT_SECONDS = 30.0
WORKER_GRACE_PERIOD = 10.0     # seconds before force-killing the bot process
SHUTDOWN_POLL_INTERVAL = 1.0

#* --- Logging ---
VERBOSE_LOGGING = os.getenv("VERBOSE_LOGGING", "False").lower() in ('true', '1', 't')
LOG_BUFFER_FLUSH_INTERVAL = 10

# Grafana Loki (for observability)
LOKI_ENABLED = os.getenv("LOKI_ENABLED", "False").lower() in ('true', '1', 't')
LOKI_URL = os.getenv("LOKI_URL", "http://localhost:3100")
LOKI_ORG_ID = os.getenv("LOKI_ORG_ID", "fake")

#* --- MODIFIABLE SETTINGS (Changeable via the 'config' command) ---
MODIFIABLE_SETTINGS = {
    "MAX_IMMEDIATE_RESTARTS", "RESTART_DELAY_SECONDS", "RESTART_RESET_PERIOD",
    "STOP_TIMEOUT_SECONDS", "WORKER_GRACE_PERIOD", "SHUTDOWN_POLL_INTERVAL",
}

#* --- systemd Unit Template ---
SYSTEMD_UNIT_TEMPLATE = """\
# This file is auto-generated by the WorldBankBot service installer. Do not edit directly.
# The supervisor restarts the bot {max_restarts} time(s) before exiting with status 1.
[Unit]
Description={description}
After=network-online.target
Wants=network-online.target
StartLimitIntervalSec=0

[Service]
Type=simple
User={run_as}
WorkingDirectory={working_dir}
ExecStart={exec_start}
Restart=on-failure
RestartSec={restart_sec}
TimeoutStopSec={timeout_stop_sec}
SyslogIdentifier={name}

[Install]
WantedBy=multi-user.target
"""
