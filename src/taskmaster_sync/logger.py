import json
import logging
import os
import sys

_DATEFMT = "%Y-%m-%d %H:%M:%S"
_DEFAULT_MCP_LOG = "/tmp/taskmaster-sync.log"
_QUIET_LOGGERS = ("urllib3", "requests")


class JsonFormatter(logging.Formatter):
    """Render each record as one JSON object per line.

    Keys: ``ts``, ``level``, ``logger``, ``msg``, plus ``exc`` with the
    formatted traceback when the record carries exception info.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "ts": self.formatTime(record, self.datefmt or _DATEFMT),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            entry["exc"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def _formatter(log_format: str, with_name: bool) -> logging.Formatter:
    if log_format == "json":
        return JsonFormatter(datefmt=_DATEFMT)
    name = " %(name)s" if with_name else ""
    return logging.Formatter(
        f"[%(asctime)s] [%(levelname)s]{name} %(message)s", datefmt=_DATEFMT
    )


def _resolve_level(mode: str, debug: bool, level: str | None) -> int:
    if debug:
        return logging.DEBUG
    default = "WARNING" if mode == "mcp" else "INFO"
    name = (os.getenv("LOG_LEVEL") or level or default).upper()
    return getattr(logging, name, logging.INFO)


def setup_logging(
    mode: str = "cli",
    debug: bool = False,
    log_file: str | None = None,
    debug_format: str = "text",
    level: str | None = None,
) -> None:
    """
    Configure the root logger for the CLI or the MCP server.

    In ``"mcp"`` mode stdout carries JSON-RPC, so records only go to a
    file. In ``"cli"`` mode stdout carries the sync summary, so records
    go to stderr and optionally to *log_file* as well.

    Args:
        mode: ``"cli"`` or ``"mcp"``.
        debug: Force DEBUG, ignoring LOG_LEVEL and *level*.
        log_file: Log file path; in MCP mode falls back to LOG_FILE.
        debug_format: ``"text"`` or ``"json"`` for the CLI handlers.
        level: Level name from config.yml, used when LOG_LEVEL is unset.

    Environment variables:
        LOG_LEVEL: Level name. Default WARNING (mcp) or INFO (cli).
        LOG_FILE: MCP log file. Default /tmp/taskmaster-sync.log
    """
    log_level = _resolve_level(mode, debug, level)

    if mode == "mcp":
        logging.basicConfig(
            level=log_level,
            format="[%(asctime)s] [%(levelname)s] %(message)s",
            datefmt=_DATEFMT,
            filename=log_file or os.getenv("LOG_FILE", _DEFAULT_MCP_LOG),
            filemode="a",
        )
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(_formatter(debug_format, with_name=False))
        handlers: list[logging.Handler] = [stderr_handler]

        if log_file:
            file_handler = logging.FileHandler(log_file, mode="a")
            file_handler.setFormatter(_formatter(debug_format, with_name=True))
            handlers.append(file_handler)

        logging.basicConfig(level=log_level, handlers=handlers)

    if log_level != logging.DEBUG:
        for name in _QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)
