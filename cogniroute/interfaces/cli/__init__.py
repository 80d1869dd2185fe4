"""
CLI Interface - Command-line tools for CogniRoute.

Provides commands for:
- Answering queries through the orchestrator
- Tree-of-thoughts reasoning
- Offline routing and embedding inspection
"""

from .main import app, main

__all__ = ["app", "main"]
