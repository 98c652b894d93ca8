"""VinCord: game server <-> Discord chat and presence relay"""

__version__ = "0.1.0"
