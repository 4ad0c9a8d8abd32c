"""GBP-Sync Package.

This package contains the Google Business Profile synchronization job:
- sync: Normalizes fetched records, diffs them against PostgreSQL and writes changes
- provider: Fetches location, verification and review data from Google
- messaging: Publishes downstream work messages to SQS queues
"""

__version__ = "0.1.0"
