"""HeadroomCalc: track yearly income and the room left in the current tax bracket."""

__version__ = "0.2.0"
