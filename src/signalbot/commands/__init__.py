"""Inbound chat command handling."""

from signalbot.commands.dispatcher import Command, CommandDispatcher, parse_command

__all__ = ["Command", "CommandDispatcher", "parse_command"]
