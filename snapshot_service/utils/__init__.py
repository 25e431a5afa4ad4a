"""
Utility modules for Snapshot Service.
"""
