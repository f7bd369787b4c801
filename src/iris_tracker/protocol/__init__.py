from . import commands
from .codec import decode, encode

__all__ = ["commands", "decode", "encode"]
