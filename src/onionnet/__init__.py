"""onionnet - layered-encryption message relay network.

A sender wraps a message in one encryption layer per relay; each relay
peels exactly one layer and forwards what is left, until the plaintext
reaches the recipient.
"""

__version__ = "0.1.0"
