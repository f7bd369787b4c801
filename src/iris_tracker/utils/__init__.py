from .logging import ThrottledLogger

__all__ = ["ThrottledLogger"]
