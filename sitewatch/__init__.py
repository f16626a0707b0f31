"""
Sitewatch Django application.

This app watches websites for material content changes, crawls them,
and regenerates llms.txt summaries whenever a change is detected.
"""
