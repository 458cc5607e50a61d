import json
import sys
from datetime import datetime
from enum import Enum
from typing import Any, Optional, TextIO


class LogLevel(Enum):
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    SUCCESS = "SUCCESS"


class Colors:
    """ANSI color codes for console output"""
    RESET = '\033[0m'
    BOLD = '\033[1m'
    DIM = '\033[2m'

    BRIGHT_BLACK = '\033[90m'
    BRIGHT_RED = '\033[91m'
    BRIGHT_GREEN = '\033[92m'
    BRIGHT_YELLOW = '\033[93m'
    BRIGHT_BLUE = '\033[94m'
    BRIGHT_CYAN = '\033[96m'


LEVEL_COLORS = {
    LogLevel.DEBUG: Colors.BRIGHT_CYAN,
    LogLevel.INFO: Colors.BRIGHT_BLUE,
    LogLevel.WARNING: Colors.BRIGHT_YELLOW,
    LogLevel.ERROR: Colors.BRIGHT_RED,
    LogLevel.SUCCESS: Colors.BRIGHT_GREEN,
}

# Longest rendering of a dict/list extra before it is cut off
MAX_EXTRA_LENGTH = 100


class ChurchChatLogger:
    """Console logger for request handlers: colorized, tagged by service and context, with key=value extras"""

    def __init__(self, service_name: str = "CHAT", enable_colors: Optional[bool] = None, stream: Optional[TextIO] = None):
        self.service_name = service_name.upper()
        self.stream = stream or sys.stdout
        if enable_colors is None:
            enable_colors = hasattr(self.stream, "isatty") and self.stream.isatty()
        self.enable_colors = enable_colors

    def _colorize(self, text: str, color: str) -> str:
        if not self.enable_colors:
            return text
        return f"{color}{text}{Colors.RESET}"

    def _tag(self, context: Optional[str]) -> str:
        tag = self.service_name
        if context:
            tag += f"/{context.upper()}"
        return self._colorize(f"[{tag}]", Colors.BRIGHT_BLACK)

    @staticmethod
    def _render_extra(value: Any) -> str:
        if isinstance(value, (dict, list)):
            rendered = json.dumps(value, default=str, separators=(',', ':'))
            if len(rendered) > MAX_EXTRA_LENGTH:
                rendered = rendered[:MAX_EXTRA_LENGTH] + "..."
            return rendered
        return str(value)

    def format(self, level: LogLevel, message: str, context: Optional[str] = None, **kwargs) -> str:
        """Format: [TIMESTAMP] [SERVICE/CONTEXT] [LEVEL] message | key=value, ..."""
        timestamp = self._colorize(f"[{datetime.now().strftime('%H:%M:%S.%f')[:-3]}]", Colors.DIM)
        level_text = self._colorize(f"[{level.value}]", LEVEL_COLORS[level] + Colors.BOLD)
        line = f"{timestamp} {self._tag(context)} {level_text} {message}"

        if kwargs:
            extras = ", ".join(f"{key}={self._render_extra(value)}" for key, value in kwargs.items())
            line += self._colorize(f" | {extras}", Colors.DIM)
        return line

    def _log(self, level: LogLevel, message: str, context: Optional[str] = None, **kwargs):
        print(self.format(level, message, context, **kwargs), file=self.stream)
        self.stream.flush()

    def debug(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.ERROR, message, context, **kwargs)

    def success(self, message: str, context: Optional[str] = None, **kwargs):
        self._log(LogLevel.SUCCESS, message, context, **kwargs)

    def banner(self, message: str, context: Optional[str] = None, char: str = "═", width: int = 50):
        """Print a centered banner line, used at startup and shutdown"""
        content = f" {message} "
        if len(content) < width - 4:
            padding = (width - len(content)) // 2
            content = char * padding + content + char * (width - len(content) - padding)
        banner = self._colorize(content, Colors.BRIGHT_CYAN + Colors.BOLD)
        timestamp = self._colorize(f"[{datetime.now().strftime('%H:%M:%S.%f')[:-3]}]", Colors.DIM)
        print(f"{timestamp} {self._tag(context)} {banner}", file=self.stream)
        self.stream.flush()


# Global logger instances for different services
api_logger = ChurchChatLogger("API")
auth_logger = ChurchChatLogger("AUTH")
