"""
Sopen - content publishing service.

The boot orchestrator lives in ``sopen.core``; ``sopen.main`` is the process
entry point.
"""

__version__ = "1.0.0"
