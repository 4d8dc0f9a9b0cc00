"""
Callsheet Core Module

Contains core systems including configuration, constants, exceptions, and logging.
"""

from .config import BreakdownConfig, CallsheetConfig, LLMConfig, FunctionLLMMapping, load_config
from .constants import *
from .exceptions import *
from .logging_config import setup_logging, get_logger, LogLevel

__all__ = [
    'BreakdownConfig',
    'CallsheetConfig',
    'LLMConfig',
    'FunctionLLMMapping',
    'load_config',
    'setup_logging',
    'get_logger',
    'LogLevel',
]
