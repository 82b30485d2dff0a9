"""Terrain-aware LoRa 915 MHz link budget and coverage planning."""

__version__ = "1.0.0"
