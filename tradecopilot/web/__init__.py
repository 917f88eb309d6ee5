"""TradeCopilot web API."""
