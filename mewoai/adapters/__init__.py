"""Integration adapters.

Adapters connect the member services to external systems (Discord for now).
"""
