"""Run monitor — pure read-only projection over the run ledger.

The monitor never maintains its own state.  Every call re-reads the
ledger; it displays the truth recorded there and computes none of its own.

Modules
-------
projection
    ``MonitorProjection`` reads the ledger and produces frozen
    ``RunSnapshot`` models.
renderer
    ``MonitorRenderer`` turns a ``RunSnapshot`` into Rich renderables,
    including a continuous ``rich.live`` mode.
"""
