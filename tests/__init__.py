"""Test package for the arcade mode engines.

Engine tests drive the sessions with a fake clock and an in-memory record
store; the UI smoke tests run the pygame shell headlessly using pygame's
dummy video driver.  Run ``pytest`` from the project root.
"""
