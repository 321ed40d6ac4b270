# emulator/__init__.py
"""
Kenwood TS-590SG CAT emulation package.

Exports:
- Ts590sgProtocol (command -> reply formatting from cached RadioState)
- CatServer       (TCP listener, one handler thread per client)
"""

from .server import CatServer, CatServerError, DEFAULT_CAT_PORT
from .ts590sg import Ts590sgProtocol

__all__ = [
    "CatServer",
    "CatServerError",
    "Ts590sgProtocol",
    "DEFAULT_CAT_PORT",
]
