from fastapi import Request

from src.commands.executor.command_executor import CommandExecutor
from src.config.settings import AdapterConfig


# Dependency functions
def get_config(request: Request) -> AdapterConfig:
    """Adapter configuration loaded during application startup"""
    return request.app.state.config


def get_command_executor(request: Request) -> CommandExecutor:
    """Process-wide command executor built during application startup"""
    return request.app.state.command_executor
