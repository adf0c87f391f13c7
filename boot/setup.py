"""
boot/setup.py - Configuration and Environment Setup

This module handles:
- Loading environment variables
- Building the process configuration
- Configuring logging

Responsibilities:
- Find and load .env files
- Read AGENT_* environment variables into a plain dict
- Initialize logging (console plus optional per-session file)

Rules:
- No business logic
- Only configuration loading
- Fail fast if a value cannot be parsed
"""

import os
import logging
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Optional


def get_project_root() -> Path:
    """Get the project root directory."""
    # Assume boot/ is at project root
    return Path(__file__).parent.parent


def load_env_file(env_path: Optional[Path] = None) -> None:
    """Load environment variables from .env file.

    Variables already set in the environment win over the file.

    Args:
        env_path: Path to .env file. If None, searches in project root.
    """
    if env_path is None:
        env_path = get_project_root() / ".env"

    if not env_path.exists():
        return

    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue

            if "=" in line:
                key, value = line.split("=", 1)
                os.environ.setdefault(key.strip(), value.strip().strip('"').strip("'"))


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def load_config(env_path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from environment and .env file.

    Returns:
        Configuration dictionary

    Raises:
        ValueError: If a numeric variable is not a number
    """
    # Load .env file first
    load_env_file(env_path)

    config = {
        # Engine
        "max_turns": int(os.getenv("AGENT_MAX_TURNS", "50")),
        "handoff_consumes_turn": _env_bool("AGENT_HANDOFF_CONSUMES_TURN", "true"),

        # Models
        "model": os.getenv("AGENT_MODEL") or None,
        "fast_model": os.getenv("AGENT_FAST_MODEL") or None,

        # Guardrails
        "guardrail_cache": _env_bool("AGENT_GUARDRAIL_CACHE", "true"),

        # Logging
        "log_level": os.getenv("AGENT_LOG_LEVEL", "INFO"),
        "log_dir": os.getenv("AGENT_LOG_DIR") or None,

        # Paths
        "project_root": str(get_project_root()),
    }

    if config["max_turns"] < 1:
        raise ValueError(f"AGENT_MAX_TURNS must be at least 1, got {config['max_turns']}")

    return config


def setup_logging(
    level: Optional[str] = None,
    log_dir: Optional[str] = None,
    session_id: Optional[str] = None,
) -> Optional[str]:
    """Setup logging configuration with console and optional file output.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_dir: Directory for the session log file; no file when None
        session_id: Optional session ID for log file name

    Returns:
        Path to the session log file, or None without log_dir
    """
    if level is None:
        level = os.getenv("AGENT_LOG_LEVEL", "INFO")

    # Convert string to logging level
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)  # Capture all, filter at handler level

    # Clear existing handlers
    root_logger.handlers.clear()

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(numeric_level)
    console_formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_dir is None:
        return None

    logs_dir = Path(log_dir)
    logs_dir.mkdir(parents=True, exist_ok=True)

    # Generate session log filename
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    if session_id:
        log_filename = f"session_{timestamp}_{session_id[:8]}.log"
    else:
        log_filename = f"session_{timestamp}.log"
    log_path = logs_dir / log_filename

    # File handler (captures everything with verbose format)
    file_handler = logging.FileHandler(log_path, encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)
    file_formatter = logging.Formatter(
        "%(asctime)s.%(msecs)03d [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    file_handler.setFormatter(file_formatter)
    root_logger.addHandler(file_handler)

    logging.info(f"Session log started: {log_path}")

    return str(log_path)
