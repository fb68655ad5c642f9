"""Test package for the Cognitive Bubbles trainer.

This package contains unit tests for expression generation and the round
session controller, scripted headless runs, and UI smoke tests.  The UI tests
run headlessly using pygame's dummy video driver to avoid opening real
windows.  To run these tests, execute ``pytest`` from the project root.
"""
