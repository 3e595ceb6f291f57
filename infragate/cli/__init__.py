"""Infragate CLI — Typer-based command-line interface.

Provides the ``infragate`` command with subcommands for triggering runs,
advancing them past approval wait points, recording approvals, showing
run status, inspecting tag resolution and pruning expired artifacts.

All output uses Rich for formatted terminal display.
"""
