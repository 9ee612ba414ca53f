"""
Experiment Configuration Inspector
==================================

Inspects a web page and reports the experimentation and tracking configuration
active on it: Optimizely projects and experiments, Shopify state, GA4/GTM tags.

Resolution: Check identifiers → Fetch sources → Parse → Merge → Report
"""

__version__ = "0.1.0"
