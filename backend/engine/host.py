"""
The host operations the maintenance tools call through.

Traversals never touch a workspace directly; anything implementing
ModelHost (the file-backed ModelWorkspace, or a test double) will do.
"""

from pathlib import Path
from typing import Any, Optional, Protocol, runtime_checkable

from engine.model import Line, Port


@runtime_checkable
class ModelHost(Protocol):

    def load_system(self, name_or_path: str) -> str:
        """Make a model or library resident; returns its name."""

    def is_loaded(self, name: str) -> bool:
        ...

    def close_system(self, name: str) -> None:
        ...

    def locate_model(self, name: str) -> Optional[Path]:
        """Resolve a model name to a file on the search path, or None."""

    def find_blocks(self, system: str, block_type: Optional[str] = None,
                    recursive: bool = False) -> list[str]:
        """Paths of the blocks inside a system, in declaration order."""

    def get_param(self, path: str, name: str) -> Any:
        ...

    def set_param(self, path: str, name: str, value: Any) -> None:
        ...

    def get_line(self, port: Port) -> Optional[Line]:
        """Line attached to the port, or None when unconnected."""

    def add_block(self, source: str, dest_path: str) -> str:
        ...

    def add_line(self, system: str, src: str, dst: str) -> Line:
        """Connect "<block>/<port>" endpoints inside a system."""

    def activate_variant(self, path: str, choice: str) -> None:
        ...
