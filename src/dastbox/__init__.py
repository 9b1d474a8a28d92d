"""Reproducible DAST runs against throwaway containers.

The ``orchestrate`` command lives in :mod:`dastbox.cli`. The runtime,
lifecycle, scan, report and orchestrator packages import on their own
without pulling in the command line stack.
"""
