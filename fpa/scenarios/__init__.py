"""Scenario planning: store, simulation, sensitivity and comparison."""
