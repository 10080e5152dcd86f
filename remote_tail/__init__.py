"""Remote log streaming engine: SSH sessions, tailing and one-shot reads."""

from .config import DEFAULT_CONFIG, EngineConfig, load_config
from .credentials import Credentials, Endpoint, KeyAuth, PasswordAuth
from .events import EventKind, LineEvent, TailEvent
from .reassembler import LineReassembler
from .state.app_state import AppState, ConnectionStatus, get_app_state, init_app_state, reset_app_state
from .state.registry import SessionRegistry, TailTarget

__all__ = [
    "AppState",
    "ConnectionStatus",
    "Credentials",
    "DEFAULT_CONFIG",
    "Endpoint",
    "EngineConfig",
    "EventKind",
    "KeyAuth",
    "LineEvent",
    "LineReassembler",
    "PasswordAuth",
    "SessionRegistry",
    "TailEvent",
    "TailTarget",
    "get_app_state",
    "init_app_state",
    "load_config",
    "reset_app_state",
]
