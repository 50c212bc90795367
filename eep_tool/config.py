import os
from pathlib import Path

LOG_DIR = Path(os.environ.get("EEP_TOOL_LOG_DIR", Path(__file__).parent / "logs"))

LOG_FILE = LOG_DIR / "session.jsonl"
APP_NAME = "EEP Tool"
LOGGER_NAME = "eep_tool"
