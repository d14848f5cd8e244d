"""
Vehicle as Code

Declarative, version-controlled configuration of vehicle hardware and
software: validate a configuration document, diff it against the last
applied state, and apply an ordered plan through a vehicle adapter.
"""

__version__ = "1.0.0"
__author__ = "Vehicle as Code Team"
