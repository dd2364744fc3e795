"""
Relay App - Market Data Relay

Bridges a trading backend (MetaTrader expert advisor) and browser clients.
Relays price/account snapshots from a ZeroMQ upstream to WebSocket
subscribers and forwards client commands back upstream.
"""

__version__ = "0.1.0"
__author__ = "Relay Team"
