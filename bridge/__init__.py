"""
Bridge Module

Command protocol between an automation client and the editor host.

This module provides:
- Command/response schemas
- Command handlers and the first-match command router
- A newline-delimited JSON transport over TCP, plus a client
- YAML configuration and the command-line interface
"""

__version__ = "0.1.0"
