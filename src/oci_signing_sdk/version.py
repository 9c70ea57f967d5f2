"""Version information for the OCI Signing SDK"""

__version__ = "0.1.0"
