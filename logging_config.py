import logging
import sys
import pytz
from datetime import datetime
from aiohttp import ClientError

# Custom Colors
class Colors:
    RESET = "\033[0m"
    RED = "\033[38;2;255;95;87m"        # Soft Red
    GREEN = "\033[38;2;40;200;64m"      # Fresh Green
    YELLOW = "\033[38;2;255;211;7m"     # Bright Yellow
    BLUE = "\033[38;2;0;122;255m"       # Azure Blue
    PURPLE = "\033[38;2;175;82;222m"    # Purple
    CYAN = "\033[38;2;88;86;214m"       # Indigo/Cyan
    GREY = "\033[38;2;142;142;147m"     # Slate Grey
    BOLD = "\033[1m"

_COLOR_CODES = (Colors.RESET, Colors.RED, Colors.GREEN, Colors.YELLOW, Colors.BLUE,
                Colors.PURPLE, Colors.CYAN, Colors.GREY, Colors.BOLD)


def visible_len(text: str) -> int:
    for code in _COLOR_CODES:
        text = text.replace(code, "")
    return len(text)


class LogStyler:
    """Helper for drawing boxes"""
    @staticmethod
    def box(title: str, lines: list, color=Colors.BLUE, width: int = 50):
        print(f"{color}╭" + "─" * (width - 2) + "╮" + Colors.RESET)

        # Title
        pad_len = (width - 4 - len(title)) // 2
        print(f"{color}│{Colors.RESET} {Colors.BOLD}{' ' * pad_len}{title}{' ' * (width - 4 - len(title) - pad_len)}{Colors.RESET} {color}│{Colors.RESET}")

        print(f"{color}├" + "─" * (width - 2) + "┤" + Colors.RESET)

        for line in lines:
            # Handle key-value pairs or plain strings
            if isinstance(line, tuple):
                key, val = line
                content = f"{key:<15} {val}"
            else:
                content = str(line)

            if visible_len(content) > width - 4:
                content = content[:width - 7] + "..."

            padding = max(0, width - 4 - visible_len(content))
            print(f"{color}│{Colors.RESET} {content}{' ' * padding} {color}│{Colors.RESET}")

        print(f"{color}╰" + "─" * (width - 2) + "╯" + Colors.RESET)

# 1. Modern Formatter for Console
class ModernConsoleFormatter(logging.Formatter):
    """
    Formats logs with a structured, columnar look.
    """
    def format(self, record):
        timestamp = datetime.now().strftime("%H:%M:%S")
        ts_block = f"{Colors.GREY}[{timestamp}]{Colors.RESET}"

        message = record.getMessage()

        # Categorize Logs for Visual tagging
        if record.levelno == logging.INFO:
            if record.name == "font_provider":
                tag = f"{Colors.PURPLE} FONT {Colors.RESET}"

            elif "Rendered" in message:
                tag = f"{Colors.GREEN} REND {Colors.RESET}"
                message = f"   ╰──> {message}"

            elif record.name == "og_image_service":
                tag = f"{Colors.CYAN} HTTP {Colors.RESET}"

            else:
                tag = f"{Colors.BLUE} INFO {Colors.RESET}"

        elif record.levelno == logging.WARNING:
            tag = f"{Colors.YELLOW} WARN {Colors.RESET}"
            message = f"{Colors.YELLOW}{message}{Colors.RESET}"

        elif record.levelno >= logging.ERROR:
            tag = f"{Colors.RED} ERR  {Colors.RESET}"
            message = f"{Colors.RED}{message}{Colors.RESET}"

        elif record.levelno == logging.DEBUG:
            tag = f"{Colors.GREY} DEBG {Colors.RESET}"

        else:
            tag = "      "

        return f"{ts_block} ▕{tag}▏ {message}"

# 2. Detailed Formatter for Files (timezone from LOG_TIMEZONE)
class TZFormatter(logging.Formatter):
    def __init__(self, fmt=None, datefmt=None, tz_name: str = "UTC"):
        super().__init__(fmt, datefmt)
        try:
            self.tz = pytz.timezone(tz_name)
        except pytz.UnknownTimeZoneError:
            self.tz = pytz.utc

    def converter(self, timestamp):
        dt = datetime.fromtimestamp(timestamp, self.tz)
        return dt.timetuple()

def setup_logging(log_file: str = "og_image.log", debug_file: str = "og_image_debug.log",
                  tz_name: str = "UTC", level=logging.INFO):
    """Configures the logging system"""

    # Root Logger
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if debug_file else level)

    # Clear existing handlers
    if logger.hasHandlers():
        logger.handlers.clear()

    # --- Console Handler ---
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ModernConsoleFormatter())
    logger.addHandler(console_handler)

    # Filter out noisy libraries
    logging.getLogger("aiohttp").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)

    # --- File Handler ---
    if log_file:
        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(TZFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s', '%Y-%m-%d %H:%M:%S', tz_name))
        logger.addHandler(file_handler)

    # --- Debug File Handler ---
    if debug_file:
        debug_handler = logging.FileHandler(debug_file, encoding='utf-8')
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(TZFormatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s', '%Y-%m-%d %H:%M:%S', tz_name))
        logger.addHandler(debug_handler)

    return logger

def loop_exception_handler(loop, context):
    """asyncio handler for failures in background tasks; logs and keeps serving."""
    logger = logging.getLogger(__name__)
    error = context.get("exception")
    message = context.get("message", "Unhandled error in event loop")

    if isinstance(error, ClientError):
        logger.warning(f"Network error in background task: {error}")
        logger.debug("Network Error Detail", exc_info=error)
    elif error is not None:
        logger.error(f"{message}: {error}")
        logger.debug("Critical Error", exc_info=error)
    else:
        logger.error(message)

def log_exception(e: Exception, message: str = "An error occurred"):
    logger = logging.getLogger(__name__)
    logger.error(f"{message}: {str(e)}")
    logger.debug(f"Traceback for: {message}", exc_info=e)
