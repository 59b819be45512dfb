"""
Haulmatch: dispatch core for pricing transport jobs and matching them to
resource providers, driven by a cyclic scheduler.
"""

__version__ = "0.1.0"
