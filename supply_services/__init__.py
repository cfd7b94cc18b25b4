"""
Stateful services: repositories, permission checks and workflow execution.

Submodules are imported explicitly by callers; this package imports nothing
at load time.
"""
