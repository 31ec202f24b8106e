"""
Unconnected port connector.

Walks every system below a root model (subsystems, every choice of every
variant subsystem, library and subsystem-reference definitions, referenced
models) and wires each unconnected port to a stub block: input ports get a
Ground, output ports get a Terminator.

Systems are keyed by path (or by the shared definition's identifier for
references), and each key is processed once per run. A failure on one
block or one referenced subtree is logged and the walk moves on.
"""

import logging
from dataclasses import asdict, dataclass, field
from enum import Enum

import config
from engine.host import ModelHost
from maintenance.reference_finder import referenced_model_name

logger = logging.getLogger(__name__)

GROUND = 'Ground'
TERMINATOR = 'Terminator'


class BlockKind(str, Enum):
    """How the connector treats a block, in classification precedence order."""
    SKIPPED = "skipped"
    VARIANT = "variant"
    REFERENCE = "reference"
    SUBSYSTEM = "subsystem"
    MODEL_REFERENCE = "model_reference"
    SOURCE_TAG = "source_tag"    # Inport, From: one output port
    SINK_TAG = "sink_tag"        # Outport, Goto: one input port
    PLAIN = "plain"


SOURCE_TAG_TYPES = ('Inport', 'From')
SINK_TAG_TYPES = ('Outport', 'Goto')


@dataclass
class Repair:
    """One unconnected port and the stub attached to it."""
    block: str
    port: int
    direction: str
    stub: str
    connected: bool


@dataclass
class ConnectionReport:
    """Counters and bookkeeping for one connector run."""
    model: str
    unconnected_inputs: int = 0
    unconnected_outputs: int = 0
    connections_made: int = 0
    repairs: list[Repair] = field(default_factory=list)
    visited: set[str] = field(default_factory=set)

    def to_dict(self) -> dict:
        return {
            'model': self.model,
            'unconnected_inputs': self.unconnected_inputs,
            'unconnected_outputs': self.unconnected_outputs,
            'connections_made': self.connections_made,
            'repairs': [asdict(r) for r in self.repairs],
        }


def classify(host: ModelHost, block_path: str, skip_types=config.SKIP_BLOCK_TYPES) -> BlockKind:
    block_type = host.get_param(block_path, 'BlockType')

    if block_type in skip_types:
        return BlockKind.SKIPPED
    if block_type == 'SubSystem':
        if host.get_param(block_path, 'Variant') == 'on':
            return BlockKind.VARIANT
        if host.get_param(block_path, 'ReferenceBlock') or \
                host.get_param(block_path, 'ReferencedSubsystem'):
            return BlockKind.REFERENCE
        return BlockKind.SUBSYSTEM
    if block_type == 'ModelReference':
        return BlockKind.MODEL_REFERENCE
    if block_type in SOURCE_TAG_TYPES:
        return BlockKind.SOURCE_TAG
    if block_type in SINK_TAG_TYPES:
        return BlockKind.SINK_TAG
    return BlockKind.PLAIN


class UnconnectedPortConnector:

    def __init__(self, host: ModelHost, skip_types=config.SKIP_BLOCK_TYPES):
        self.host = host
        self.skip_types = frozenset(skip_types)
        self._handlers = {
            BlockKind.SKIPPED: self._skip,
            BlockKind.VARIANT: self._process_variant,
            BlockKind.REFERENCE: self._process_reference,
            BlockKind.SUBSYSTEM: self._process_subsystem,
            BlockKind.MODEL_REFERENCE: self._process_model_reference,
            BlockKind.SOURCE_TAG: self._process_source_tag,
            BlockKind.SINK_TAG: self._process_sink_tag,
            BlockKind.PLAIN: self._process_plain,
        }

    def run(self, model_name: str) -> ConnectionReport:
        report = ConnectionReport(model=model_name)
        if not self.host.is_loaded(model_name):
            self.host.load_system(model_name)
        self._process_system(model_name, report)
        return report

    # --- traversal -------------------------------------------------------

    def _process_system(self, path: str, report: ConnectionReport) -> None:
        if path in report.visited:
            return
        report.visited.add(path)

        try:
            logger.info("Processing: %s", path)
            blocks = self.host.find_blocks(path)
            logger.info("  Found %d blocks in: %s", len(blocks), path)
        except Exception as e:
            logger.error("  Error processing %s: %s", path, e)
            return

        for block_path in blocks:
            self._process_block(block_path, report)

    def _process_block(self, block_path: str, report: ConnectionReport) -> None:
        try:
            kind = classify(self.host, block_path, self.skip_types)
            self._handlers.get(kind, self._process_plain)(block_path, report)
        except Exception as e:
            logger.error("    Error processing block %s: %s", block_path, e)

    def _skip(self, block_path, report):
        pass

    def _process_subsystem(self, block_path, report):
        logger.info("    Found regular subsystem: %s", self._name(block_path))
        self._process_system(block_path, report)

    def _process_variant(self, block_path, report):
        logger.info("    Found variant subsystem: %s", self._name(block_path))
        choices = self.host.get_param(block_path, 'VariantChoices')
        if not choices:
            self._process_system(block_path, report)
            return

        logger.info("      Processing variant choices for: %s", self._name(block_path))
        for choice in choices:
            try:
                self.host.activate_variant(block_path, choice)
                logger.info("        Activating variant: %s", choice)
                active = self.host.get_param(block_path, 'ActiveVariantBlock')
                # A choice may itself be a model reference or a library link
                self._process_block(active, report)
            except Exception as e:
                logger.error("        Error processing variant %s: %s", choice, e)

    def _process_reference(self, block_path, report):
        logger.info("    Found reference subsystem: %s", self._name(block_path))
        definition = self.host.get_param(block_path, 'ReferenceBlock') or \
            self.host.get_param(block_path, 'ReferencedSubsystem')
        logger.info("      Processing reference block: %s", definition)

        # "lib/Sub" lives in library "lib"; a referenced subsystem is its own diagram
        owner = definition.split('/')[0]
        if not self._ensure_loaded(owner, "reference block"):
            return
        self._process_system(definition, report)

    def _process_model_reference(self, block_path, report):
        logger.info("    Found model reference: %s", self._name(block_path))
        model_name = referenced_model_name(self.host, block_path)
        if model_name is None:
            return
        logger.info("      Processing referenced model: %s", model_name)
        if not self._ensure_loaded(model_name, "referenced model"):
            return
        self._process_system(model_name, report)

    def _ensure_loaded(self, name, what) -> bool:
        if self.host.is_loaded(name):
            return True
        try:
            self.host.load_system(name)
        except Exception as e:
            logger.warning("        Could not load %s %s: %s", what, name, e)
            return False
        logger.info("        Loaded %s: %s", what, name)
        return True

    # --- port repair -----------------------------------------------------

    def _process_source_tag(self, block_path, report):
        block_type = self.host.get_param(block_path, 'BlockType')
        logger.info("    Found %s block: %s", block_type, self._name(block_path))
        handles = self.host.get_param(block_path, 'PortHandles')
        if handles.outport and self.host.get_line(handles.outport[0]) is None:
            logger.info("      Unconnected %s found: %s", block_type, block_path)
            self._repair(block_path, 1, 'out', report)

    def _process_sink_tag(self, block_path, report):
        block_type = self.host.get_param(block_path, 'BlockType')
        logger.info("    Found %s block: %s", block_type, self._name(block_path))
        handles = self.host.get_param(block_path, 'PortHandles')
        if handles.inport and self.host.get_line(handles.inport[0]) is None:
            logger.info("      Unconnected %s found: %s", block_type, block_path)
            self._repair(block_path, 1, 'in', report)

    def _process_plain(self, block_path, report):
        handles = self.host.get_param(block_path, 'PortHandles')

        # Inspect everything first so a failed query leaves no partial counts
        open_ports = []
        for index, port in enumerate(handles.inport, start=1):
            if self.host.get_line(port) is None:
                open_ports.append((index, 'in'))
        for index, port in enumerate(handles.outport, start=1):
            if self.host.get_line(port) is None:
                open_ports.append((index, 'out'))

        for index, direction in open_ports:
            kind = 'input' if direction == 'in' else 'output'
            logger.info("    Unconnected %s port found: %s (port %d)", kind, block_path, index)
            self._repair(block_path, index, direction, report)

    def _repair(self, block_path, index, direction, report):
        if direction == 'in':
            report.unconnected_inputs += 1
            stub_kind = GROUND
        else:
            report.unconnected_outputs += 1
            stub_kind = TERMINATOR

        stub, connected = self._attach_stub(block_path, index, direction)
        report.repairs.append(Repair(block_path, index, direction, stub, connected))
        if connected:
            report.connections_made += 1
            logger.info("      -> Connected to %s block", stub_kind.lower())
        else:
            logger.info("      -> Failed to connect to %s block", stub_kind.lower())

    def _attach_stub(self, block_path, index, direction):
        """Create a Ground/Terminator next to the block and wire it to the port."""
        stub_path = ''
        try:
            name = self.host.get_param(block_path, 'Name')
            parent = self.host.get_param(block_path, 'Parent')
            left, top, right, bottom = self.host.get_param(block_path, 'Position')
            n_in, n_out = self.host.get_param(block_path, 'Ports')[:2]

            if direction == 'in':
                stub_kind, source, count = GROUND, config.GROUND_SOURCE, n_in
                x = left - config.STUB_OFFSET
            else:
                stub_kind, source, count = TERMINATOR, config.TERMINATOR_SOURCE, n_out
                x = right + config.STUB_OFFSET
            y = top + (index - 1) * ((bottom - top) / max(1, count))

            stub_name = f"{name}_{stub_kind}_{index}"
            stub_path = f"{parent}/{stub_name}"
            self.host.add_block(source, stub_path)
            self.host.set_param(stub_path, 'Position', [
                x - config.STUB_HALF_WIDTH, y - config.STUB_HALF_HEIGHT,
                x + config.STUB_HALF_WIDTH, y + config.STUB_HALF_HEIGHT,
            ])

            if direction == 'in':
                self.host.add_line(parent, f"{stub_name}/1", f"{name}/{index}")
            else:
                self.host.add_line(parent, f"{name}/{index}", f"{stub_name}/1")
            return stub_path, True

        except Exception as e:
            logger.warning("        Error connecting to %s: %s",
                           GROUND.lower() if direction == 'in' else TERMINATOR.lower(), e)
            return stub_path, False

    def _name(self, block_path):
        return self.host.get_param(block_path, 'Name')


def connect_unconnected_blocks(host: ModelHost, model_name: str) -> ConnectionReport:
    """Repair every unconnected port below model_name; returns the counters."""
    return UnconnectedPortConnector(host).run(model_name)
