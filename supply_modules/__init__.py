"""
Workflow modules: purchasing, internal requests, quotations, individualized
inventory and financial administration.  Each module drives the kernel
ledgers; none of them touches a balance directly.
"""
