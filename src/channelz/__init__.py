"""Channelz topology queries and reports.

Pages through channels, servers and server sockets, resolves entity
references and renders the results as tables.
"""

__version__ = "1.0.0"
