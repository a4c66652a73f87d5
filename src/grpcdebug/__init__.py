"""grpcdebug command-line client.

Connects to a gRPC target and prints its channelz topology, health status
and xDS client status.
"""
from src.shared.constants import VERSION

__version__ = VERSION
