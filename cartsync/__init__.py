"""CartSync: device/user cart reconciliation."""
__version__ = "0.1.0"
