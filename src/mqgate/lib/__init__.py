from . import toolkit

__all__ = ("toolkit",)
