"""CLI module for WaBot."""
