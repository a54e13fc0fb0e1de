"""
Nexora Client - Inventory data-access and export-job layer.

Async repositories with cache-aside reads for inventory entities, and a
polling state machine that follows server-side export jobs to completion.
"""

__version__ = "0.1.0"
__app_name__ = "nexora"
