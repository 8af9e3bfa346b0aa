from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class AppState:
    status_message: str = ""
    status_message_until: float = 0.0
    error_lines: list[str] = field(default_factory=list)
    show_help: bool = False
    dirty: bool = True
    quit: bool = False
    skip_next_lf: bool = False
    spinner_frame: int = 0
    width: int = 100
    height: int = 30
