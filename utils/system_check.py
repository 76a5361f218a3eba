"""
System tools validation for docker-chaos.
Checks that the compose tool can be run before any chaos is scheduled.
"""

import shlex
import subprocess
from typing import Dict, List

from colorama import Fore, Style


class SystemCheck:
    """Validates external tools."""

    REQUIRED_TOOLS = {
        'compose': {
            'name': 'docker-compose',
            'args': ['version'],
            'critical': True,
            'purpose': 'scaling services and capturing logs'
        },
        'docker': {
            'name': 'Docker',
            'command': ['docker'],
            'args': ['--version'],
            'critical': False,
            'purpose': 'container runtime'
        }
    }

    def __init__(self, compose_tool: str = 'docker-compose'):
        """Initialize SystemCheck with the configured compose command."""
        self.compose_tool = compose_tool

    def get_tool_command(self, tool_key: str) -> List[str]:
        """
        Get the command to run for a specific tool.

        Args:
            tool_key: Key from REQUIRED_TOOLS dict

        Returns:
            List of command parts to execute
        """
        if tool_key == 'compose':
            return shlex.split(self.compose_tool)
        tool_info = self.REQUIRED_TOOLS.get(tool_key)
        if not tool_info:
            return []
        return list(tool_info['command'])

    def check_tool(self, tool_key: str) -> bool:
        """
        Check if a specific tool is available.

        Args:
            tool_key: Key from REQUIRED_TOOLS dict

        Returns:
            True if tool is available, False otherwise
        """
        tool_info = self.REQUIRED_TOOLS.get(tool_key)
        command = self.get_tool_command(tool_key)
        if not tool_info or not command:
            return False

        try:
            result = subprocess.run(
                command + tool_info['args'],
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                timeout=10
            )
        except (FileNotFoundError, PermissionError, subprocess.TimeoutExpired):
            return False
        return result.returncode == 0

    def check_all_tools(self) -> Dict[str, bool]:
        """
        Check all required tools.

        Returns:
            Dictionary mapping tool keys to availability status
        """
        results = {}
        for tool_key in self.REQUIRED_TOOLS:
            results[tool_key] = self.check_tool(tool_key)
        return results

    def display_tool_status(self, tools_status: Dict[str, bool]) -> bool:
        """
        Display status of all tools and check if we can proceed.

        Args:
            tools_status: Dictionary from check_all_tools()

        Returns:
            True if we can proceed, False if critical tools missing
        """
        can_proceed = True
        status_parts = []

        for tool_key, is_available in tools_status.items():
            tool_info = self.REQUIRED_TOOLS[tool_key]
            name = self.compose_tool if tool_key == 'compose' else tool_info['name']

            if is_available:
                status_parts.append(f"{Fore.GREEN}{name}: OK{Style.RESET_ALL}")
            elif tool_info['critical']:
                status_parts.append(f"{Fore.RED}{name}: MISSING{Style.RESET_ALL}")
                can_proceed = False
            else:
                status_parts.append(f"{Fore.YELLOW}{name}: SKIP{Style.RESET_ALL}")

        print(" | ".join(status_parts))

        if not can_proceed:
            print(Fore.RED + "ERROR: Critical tools missing! Cannot continue." + Style.RESET_ALL)
            print(f"{Fore.YELLOW}TIP: Install docker-compose or set 'compose_tool' in your config file "
                  f"(e.g. \"docker compose\"){Style.RESET_ALL}")

        return can_proceed
