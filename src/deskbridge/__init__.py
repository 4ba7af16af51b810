"""
deskbridge — Relay between a browser chat widget and support agents on Telegram.
"""

__version__ = "0.1.0"
