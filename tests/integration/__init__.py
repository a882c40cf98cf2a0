"""
Integration tests for trialkit.

Run the pytest plugin end-to-end on generated test modules via pytester.
"""
