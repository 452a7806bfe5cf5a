"""Autonomous job application agent: pipeline, bulk runs, risk and strategy control."""

__version__ = "0.1.0"
