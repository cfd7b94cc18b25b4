"""Kernel services: budget ledger, stock ledger and transfer coordinator."""
