from . import relay

__all__ = ["relay"]
