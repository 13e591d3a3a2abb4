"""
WaBot - auto-reply engine for WhatsApp connectors.
"""

__version__ = "0.1.0"
__logo__ = "💬"
