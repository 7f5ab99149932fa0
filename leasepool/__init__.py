"""LeasePool - lease-based dispenser of unique items from a shared SQLite pool"""

__version__ = "0.1.0"
