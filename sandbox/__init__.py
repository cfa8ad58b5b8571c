"""
Sandbox Module

Runs caller-supplied code fragments inside the live editor host.

This module provides:
- Synthesis of a complete host script from a fragment (print capture,
  indentation normalization, template assembly)
- The transient-node lifecycle: create, compile, attach, wait frames, free
- Collection of captured output, result and error into an ExecutionResult
- An optional builtins policy restricting imports and dangerous builtins

WARNING: The restricted policy is best-effort. Scripts run in the host
process and are trusted to the same degree as the connected client.
"""

__version__ = "0.1.0"
