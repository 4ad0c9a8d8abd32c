"""
Sync Service

This service keeps the local copy of Google Business Profile locations and
reviews in step with Google.

Key responsibilities:
- Project raw provider payloads onto the stored row shape
- Detect which tracked fields changed since the last run
- Record history rows and verification-status notifications
- Write the new rows and queue downstream work
"""

__version__ = "0.1.0"
