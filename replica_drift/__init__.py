"""Hyper-V replica inventory and primary/replica configuration drift report."""

__version__ = "0.3.0"
