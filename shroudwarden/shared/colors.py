"""
Terminal colour codes used by the console log formatter.
"""

COLOR_RED = '\033[0;31m'
COLOR_GREEN = '\033[0;32m'
COLOR_YELLOW = '\033[1;33m'
COLOR_CYAN = '\033[0;36m'
COLOR_RESET = '\033[0m'

COLOR_INFO = COLOR_GREEN
COLOR_WARNING = COLOR_YELLOW
COLOR_ERROR = COLOR_RED
COLOR_DEBUG = COLOR_CYAN
