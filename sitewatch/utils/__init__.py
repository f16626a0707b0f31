"""
Utility functions for the sitewatch application.
"""
