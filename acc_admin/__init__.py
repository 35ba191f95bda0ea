"""ACC Admin - account-creation request administration service.

Job queue management, bans, and cached address lookups for the
account-creation request tool.
"""

__version__ = "0.1.0"
