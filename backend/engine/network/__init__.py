"""Radial distribution network analysis for RetiNet.

Provides topology validation, per-component impedance, backward/forward
sweep voltage and load calculation, and three-phase fault levels.
"""
