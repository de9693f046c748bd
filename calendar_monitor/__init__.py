"""calendar_monitor - meeting aggregation engine for ICS feeds and remote calendars.

The package keeps imports light so that ``calendar_monitor`` can be inspected
without pulling in the web stack; the aiohttp server is only imported by the CLI.
"""

__version__ = "0.1.0"
