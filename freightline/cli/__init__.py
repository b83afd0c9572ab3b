"""Freightline CLI — Typer-based command-line interface.

Provides the ``freightline`` command with subcommands for loading
Warehouses and Freight, running a discovery pass, and inspecting
persisted discovery status and active Freight.

All output uses Rich for formatted terminal display.
"""
