"""End-to-end test harness for the PetSpot pet-finder application."""

__version__ = "0.1.0"
