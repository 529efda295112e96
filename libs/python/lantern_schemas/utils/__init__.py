from .validators import clamp_int, unique_trimmed

__all__ = ["clamp_int", "unique_trimmed"]
