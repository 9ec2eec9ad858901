# quizbee/__init__.py
"""Quiz synthesis and chat-driven quiz editing service."""

__version__ = "0.1.0"
