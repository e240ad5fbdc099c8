"""
Cacho: a multiplayer liar's-dice game with a host-authoritative online mode.
"""

__version__ = "0.1.0"
