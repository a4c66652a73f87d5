"""Shared constants used across the client."""
from __future__ import annotations

# Application version
VERSION: str = "1.0.0"

# Logger every module logger hangs off
ROOT_LOGGER: str = "src"

# Per-call deadlines (seconds)
DEFAULT_CONNECT_TIMEOUT: float = 5.0
DEFAULT_RPC_TIMEOUT: float = 15.0

# Page size for exhaustive pagination; 0 lets the server decide
DEFAULT_PAGE_SIZE: int = 100

# Health checking
OVERALL_SERVICE: str = ""
OVERALL_SERVICE_LABEL: str = "<Overall>"

# Config file lookup
CONFIG_ENV_VAR: str = "GRPCDEBUG_CONFIG"
LOCAL_CONFIG_FILE: str = "grpcdebug_config.yaml"
USER_CONFIG_DIR: str = "grpcdebug"
USER_CONFIG_FILE: str = "config.yaml"

# Subchannel targets are clipped in list tables
SUBCHANNEL_TARGET_WIDTH: int = 50

# Printed between sections of a tabular report
SECTION_DIVIDER: str = "---"
