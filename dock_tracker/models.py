"""Value types shared by the window discovery backends and the registry."""
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple


class BackendKind(str, enum.Enum):
    """Desktop session flavours the tracker knows how to query."""

    KDE = "kde"
    GNOME = "gnome"
    HYPRLAND = "hyprland"
    SWAY = "sway"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> Optional["BackendKind"]:
        """Return the kind named by ``value`` (case-insensitive) or None."""
        if isinstance(value, BackendKind):
            return value
        if not isinstance(value, str):
            return None
        token = value.strip().lower()
        if not token:
            return None
        aliases = {"kwin": cls.KDE, "plasma": cls.KDE, "gnome-shell": cls.GNOME, "mutter": cls.GNOME}
        if token in aliases:
            return aliases[token]
        for member in cls:
            if member.value == token:
                return member
        return None


@dataclass(frozen=True, slots=True)
class WindowRecord:
    """A single top-level window and the application it belongs to."""

    id: str
    title: str
    app_id: str
    is_focused: bool = False

    def as_dict(self) -> Dict[str, object]:
        return {"id": self.id, "title": self.title, "app_id": self.app_id, "is_focused": self.is_focused}


@dataclass(frozen=True)
class RegistrySnapshot:
    """Consistent view of the registry taken under its lock."""

    windows: Tuple[WindowRecord, ...] = ()
    counts: Dict[str, int] = field(default_factory=dict)
    revision: int = 0
    updated_at: Optional[float] = None
