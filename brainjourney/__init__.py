"""Brain Journey: daily check-in progression over a 90-unit map."""

__version__ = "0.1.0"
