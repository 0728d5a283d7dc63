"""Logging setup for GeoMapAgent.

config/logging.yaml is applied with logging.config.dictConfig; the CLI may
override the geomapagent logger level and the file handler path. Session log
lines carry the analysis session id as a ``[sess_...]`` prefix.
"""

from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict, MutableMapping, Optional

import yaml

PACKAGE_LOGGER = "geomapagent"
DEFAULT_LOGGING_YAML = Path(__file__).resolve().parents[2] / "config" / "logging.yaml"
_FALLBACK_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def _load_yaml(path: Path) -> Optional[Dict[str, Any]]:
    if not path.is_file():
        return None
    with path.open("r", encoding="utf-8") as fh:
        loaded = yaml.safe_load(fh)
    return loaded if isinstance(loaded, dict) else None


def _level_no(name: Any) -> int:
    number = logging.getLevelName(str(name).upper())
    return number if isinstance(number, int) else logging.NOTSET


def configure_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_file: Optional[str] = None,
) -> None:
    """Apply the YAML logging configuration.

    Args:
        config_path: Alternative logging.yaml; defaults to config/logging.yaml.
        log_level: Level for the geomapagent loggers (e.g. "DEBUG").
        log_file: Path for every FileHandler in the configuration.

    Without a readable YAML file, falls back to logging.basicConfig.
    """
    cfg = _load_yaml(Path(config_path) if config_path else DEFAULT_LOGGING_YAML)
    if cfg is None:
        logging.basicConfig(
            level=getattr(logging, (log_level or "INFO").upper(), logging.INFO),
            format=_FALLBACK_FORMAT,
        )
        return

    for handler in (cfg.get("handlers") or {}).values():
        if log_file and handler.get("class") == "logging.FileHandler":
            handler["filename"] = log_file

    if log_level:
        level = log_level.upper()
        for name, logger_cfg in (cfg.get("loggers") or {}).items():
            if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
                logger_cfg["level"] = level
                # Handlers filter on their own level; let DEBUG through when asked
                for handler_name in logger_cfg.get("handlers", []):
                    handler = cfg["handlers"].get(handler_name, {})
                    if _level_no(handler.get("level", "NOTSET")) > _level_no(level):
                        handler["level"] = level

    logging.config.dictConfig(cfg)


def get_logger(name: str) -> logging.Logger:
    """Logger under the geomapagent namespace ("orchestrator" -> "geomapagent.orchestrator")."""
    if name == PACKAGE_LOGGER or name.startswith(PACKAGE_LOGGER + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{PACKAGE_LOGGER}.{name}")


class SessionContextAdapter(logging.LoggerAdapter):
    """Prefixes each message with the analysis session id.

    ``get_session_logger("orchestrator", "sess_1772366400000_a1b2c3").info("Ready")``
    logs ``[sess_1772366400000_a1b2c3] Ready``.
    """

    def process(
        self, msg: str, kwargs: MutableMapping[str, Any]
    ) -> tuple[str, MutableMapping[str, Any]]:
        return f"[{self.extra.get('session_id', 'no-session')}] {msg}", kwargs


def get_session_logger(name: str, session_id: str) -> SessionContextAdapter:
    return SessionContextAdapter(get_logger(name), {"session_id": session_id})
