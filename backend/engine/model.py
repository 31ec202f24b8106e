"""
In-memory block diagram objects.

A loaded file becomes a BlockDiagram whose root System owns Blocks and
Lines. Subsystem blocks own a nested System. Ports carry at most one Line;
a port is unconnected when its line is None.
"""

from dataclasses import dataclass, field
from typing import Optional

IN = 'in'
OUT = 'out'


@dataclass(eq=False)
class Port:
    block: 'Block'
    direction: str
    index: int
    line: Optional['Line'] = None

    def __repr__(self):
        return f"Port({self.block.path}/{self.direction}:{self.index})"


@dataclass(eq=False)
class Line:
    system: 'System'
    source: Port
    destinations: list[Port] = field(default_factory=list)

    def connect(self, port: Port) -> None:
        self.destinations.append(port)
        port.line = self


@dataclass(frozen=True)
class PortHandles:
    """Ports of one block, split by direction (1-based index = position + 1)."""
    inport: tuple
    outport: tuple


@dataclass(eq=False)
class Block:
    name: str
    block_type: str
    system: 'System'
    sid: str = ''
    params: dict = field(default_factory=dict)
    position: list = field(default_factory=lambda: [0, 0, 30, 30])
    inputs: list[Port] = field(default_factory=list)
    outputs: list[Port] = field(default_factory=list)
    subsystem: Optional['System'] = None

    @property
    def path(self) -> str:
        return f"{self.system.path}/{self.name}"

    @property
    def parent(self) -> str:
        return self.system.path

    def set_port_counts(self, n_in: int, n_out: int) -> None:
        self.inputs = [Port(self, IN, i + 1) for i in range(n_in)]
        self.outputs = [Port(self, OUT, i + 1) for i in range(n_out)]

    def port(self, direction: str, index: int) -> Optional[Port]:
        ports = self.inputs if direction == IN else self.outputs
        if 1 <= index <= len(ports):
            return ports[index - 1]
        return None

    def handles(self) -> PortHandles:
        return PortHandles(inport=tuple(self.inputs), outport=tuple(self.outputs))


@dataclass(eq=False)
class System:
    name: str
    diagram: 'BlockDiagram'
    parent_block: Optional[Block] = None
    blocks: dict[str, Block] = field(default_factory=dict)
    lines: list[Line] = field(default_factory=list)

    @property
    def path(self) -> str:
        if self.parent_block is None:
            return self.diagram.name
        return self.parent_block.path

    def add(self, block: Block) -> Block:
        self.blocks[block.name] = block
        return block


@dataclass(eq=False)
class BlockDiagram:
    name: str
    kind: str = 'model'
    file_path: Optional[str] = None
    root: Optional[System] = None

    def __post_init__(self):
        if self.root is None:
            self.root = System(self.name, self)

    def resolve(self, parts: list[str]):
        """Walk block names below the root; returns a Block or the root System."""
        if not parts:
            return self.root
        system = self.root
        block = None
        for name in parts:
            if system is None or name not in system.blocks:
                return None
            block = system.blocks[name]
            system = block.subsystem
        return block

