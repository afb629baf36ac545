"""ibisdm - Information State Update dialogue manager (IBIS style)."""

__version__ = "0.3.0"
