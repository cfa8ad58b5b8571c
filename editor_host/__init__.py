"""
Editor Host Module

In-process model of the interactive editor that the bridge drives.

This module provides:
- A scene graph of named nodes with parent/child ownership
- A cooperative per-frame scheduler (SceneTree) built on asyncio
- A script compiler that reports status codes instead of raising
- A host console that mirrors script output into logging
"""

__version__ = "0.1.0"
