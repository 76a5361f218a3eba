"""
docker-chaos Utilities
Subprocess handling, input validation and system checks.
"""

from .process import ProcessResult, ProcessRunner
from .system_check import SystemCheck

__all__ = ['ProcessResult', 'ProcessRunner', 'SystemCheck']
