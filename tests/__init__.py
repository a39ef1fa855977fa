"""Test package for the Scan Trainer.

Core tests drive the drill engine and timer queue with a fake clock, so no
real time passes. UI tests run headlessly using pygame's dummy video and audio
drivers to avoid opening real windows. Run ``pytest`` from the project root.
"""
