"""Process-wide state: the session registry and the application facade."""

from .registry import SessionRegistry, TailTarget

__all__ = ["SessionRegistry", "TailTarget"]
