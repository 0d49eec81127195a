"""Dealership contract generation and digital signature"""

__version__ = "0.1.0"
