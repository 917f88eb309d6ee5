"""
TradeCopilot

AI trading coach for chart screenshots and trading notes.
Sends user context to a hosted chat-completion API and keeps a small
long-term memory of the trader's preferences, conversations and a trade journal.

WARNING: This system does NOT give financial advice. It is educational only.
"""

__version__ = "0.1.0"
__author__ = "TradeCopilot Team"
