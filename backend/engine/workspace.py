"""
File-backed modeling host.

ModelWorkspace loads .slx and .mdl files into BlockDiagram objects and
answers the queries and edits in engine.host.ModelHost. Models are found by
name on a search path, the way the desktop tool resolves names on its path.
Nothing is ever written back to disk.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import config
from engine.errors import (
    BlockNotFoundError,
    DuplicateBlockError,
    InvalidParameterError,
    LineError,
    ModelLoadError,
    ModelNotFoundError,
    UnknownParameterError,
    VariantError,
)
from engine.model import IN, OUT, Block, BlockDiagram, Line, Port, System
from parsers.mdl_parser import parse_mdl
from parsers.slx_parser import parse_slx

logger = logging.getLogger(__name__)

PARSERS = {
    '.mdl': parse_mdl,
    '.slx': parse_slx,
}

# Parameters every block answers even when the file never stored them
PARAM_DEFAULTS = {
    'ReferenceBlock': '',
    'ReferencedSubsystem': '',
    'ModelName': '',
    'Variant': 'off',
    'ActiveVariant': '',
}

READ_ONLY = frozenset({
    'Name', 'BlockType', 'Parent', 'Path', 'SID', 'Ports', 'PortHandles',
    'VariantChoices', 'ActiveVariantBlock',
})

VARIANT_CHOICE_TYPES = ('SubSystem', 'ModelReference')
DEFAULT_POSITION = [0.0, 0.0, 30.0, 30.0]


class ModelWorkspace:

    def __init__(self, search_path=None):
        self.search_path: list[Path] = []
        self._diagrams: dict[str, BlockDiagram] = {}
        for directory in search_path or []:
            self.add_search_dir(directory)

    def add_search_dir(self, directory) -> None:
        directory = Path(directory)
        if directory not in self.search_path:
            self.search_path.append(directory)

    # --- loading ---------------------------------------------------------

    def load_system(self, name_or_path: str) -> str:
        candidate = Path(name_or_path)
        if candidate.suffix.lower() in config.MODEL_EXTENSIONS:
            name = candidate.stem
            if name in self._diagrams:
                return name
            if not candidate.is_file():
                raise ModelNotFoundError(f"Model file '{name_or_path}' does not exist")
            model_file = candidate
            self.add_search_dir(candidate.parent)
        else:
            # A block path loads the diagram that owns it
            name = str(name_or_path).split('/')[0]
            if name in self._diagrams:
                return name
            model_file = self.locate_model(name)
            if model_file is None:
                raise ModelNotFoundError(f"Model '{name}' not found on the search path")

        parser = PARSERS[model_file.suffix.lower()]
        description = parser(str(model_file))
        try:
            diagram = self._build(name, description, model_file)
        except (KeyError, TypeError, ValueError) as e:
            raise ModelLoadError(f"Could not build model '{name}': {e}") from e

        self._diagrams[name] = diagram
        logger.debug("Loaded %s '%s' from %s", diagram.kind, name, model_file)
        return name

    def is_loaded(self, name: str) -> bool:
        return name in self._diagrams

    def close_system(self, name: str) -> None:
        if self._diagrams.pop(name, None) is not None:
            logger.debug("Closed '%s' without saving", name)

    def locate_model(self, name: str) -> Optional[Path]:
        for directory in self.search_path:
            for ext in config.MODEL_EXTENSIONS:
                model_file = directory / f"{name}{ext}"
                if model_file.is_file():
                    return model_file
        return None

    # --- queries ---------------------------------------------------------

    def find_blocks(self, system: str, block_type: Optional[str] = None,
                    recursive: bool = False) -> list[str]:
        found = []
        self._collect(self._system(system), block_type, recursive, found)
        return found

    def get_param(self, path: str, name: str) -> Any:
        target = self._resolve(path)

        if isinstance(target, System):
            diagram = target.diagram
            if name == 'Name':
                return diagram.name
            if name == 'BlockType':
                return 'block_diagram'
            if name == 'BlockDiagramType':
                return diagram.kind
            if name == 'FileName':
                return diagram.file_path or ''
            raise UnknownParameterError(f"Block diagram '{path}' has no parameter '{name}'")

        block = target
        if name == 'Name':
            return block.name
        if name == 'BlockType':
            return block.block_type
        if name == 'Parent':
            return block.parent
        if name == 'Path':
            return block.path
        if name == 'SID':
            return block.sid
        if name == 'Position':
            return list(block.position)
        if name == 'Ports':
            return [len(block.inputs), len(block.outputs)]
        if name == 'PortHandles':
            return block.handles()
        if name == 'VariantChoices':
            return self._variant_choices(block)
        if name == 'ActiveVariantBlock':
            active = block.params.get('ActiveVariant', '')
            return f"{block.path}/{active}" if active and self._is_variant(block) else ''

        if name in block.params:
            return block.params[name]
        if name in PARAM_DEFAULTS:
            return PARAM_DEFAULTS[name]
        raise UnknownParameterError(f"Block '{block.path}' has no parameter '{name}'")

    def get_line(self, port: Port) -> Optional[Line]:
        return port.line

    # --- edits -----------------------------------------------------------

    def set_param(self, path: str, name: str, value: Any) -> None:
        block = self._block(path)

        if name in READ_ONLY:
            raise InvalidParameterError(f"Parameter '{name}' of '{path}' is read-only")
        if name == 'ActiveVariant':
            self.activate_variant(path, value)
            return
        if name == 'Position':
            try:
                position = [float(v) for v in value]
            except (TypeError, ValueError) as e:
                raise InvalidParameterError(f"Invalid position for '{path}': {value!r}") from e
            if len(position) != 4:
                raise InvalidParameterError(f"Position of '{path}' needs 4 values, got {len(position)}")
            block.position = position
            return

        block.params[name] = value

    def add_block(self, source: str, dest_path: str) -> str:
        library, _, block_type = source.rpartition('/')
        if library != 'built-in' or not block_type:
            raise BlockNotFoundError(f"Unknown block source '{source}'")

        parent, _, name = dest_path.rpartition('/')
        if not parent or not name:
            raise BlockNotFoundError(f"Invalid destination path '{dest_path}'")

        system = self._system(parent)
        if name in system.blocks:
            raise DuplicateBlockError(f"A block named '{name}' already exists in '{parent}'")

        block = Block(name, block_type, system, position=list(DEFAULT_POSITION))
        block.set_port_counts(*config.DEFAULT_PORTS.get(block_type, config.FALLBACK_PORTS))
        system.add(block)
        return block.path

    def add_line(self, system: str, src: str, dst: str) -> Line:
        owner = self._system(system)
        src_port = self._endpoint(owner, src, OUT)
        dst_port = self._endpoint(owner, dst, IN)

        if dst_port.line is not None:
            raise LineError(f"Input port '{system}/{dst}' is already connected")

        line = src_port.line
        if line is None:
            line = Line(owner, src_port)
            src_port.line = line
            owner.lines.append(line)
        line.connect(dst_port)
        return line

    def activate_variant(self, path: str, choice: str) -> None:
        block = self._block(path)
        if not self._is_variant(block):
            raise VariantError(f"'{path}' is not a variant subsystem")
        if choice not in self._variant_choices(block):
            raise VariantError(f"'{path}' has no variant choice '{choice}'")
        block.params['ActiveVariant'] = choice

    # --- internals -------------------------------------------------------

    def _resolve(self, path: str):
        parts = str(path).split('/')
        diagram = self._diagrams.get(parts[0])
        if diagram is None:
            raise BlockNotFoundError(f"'{parts[0]}' is not loaded")
        target = diagram.resolve(parts[1:])
        if target is None:
            raise BlockNotFoundError(f"'{path}' does not exist")
        return target

    def _block(self, path: str) -> Block:
        target = self._resolve(path)
        if isinstance(target, System):
            raise BlockNotFoundError(f"'{path}' is a block diagram, not a block")
        return target

    def _system(self, path: str) -> System:
        target = self._resolve(path)
        if isinstance(target, System):
            return target
        if target.subsystem is None:
            raise BlockNotFoundError(f"'{path}' has no contents")
        return target.subsystem

    def _collect(self, system, block_type, recursive, found):
        for block in list(system.blocks.values()):
            if block_type is None or block.block_type == block_type:
                found.append(block.path)
            if recursive and block.subsystem is not None:
                self._collect(block.subsystem, block_type, recursive, found)

    @staticmethod
    def _endpoint(system: System, text: str, direction: str) -> Port:
        name, _, index = str(text).rpartition('/')
        block = system.blocks.get(name)
        if block is None:
            raise LineError(f"No block '{name}' in '{system.path}'")
        try:
            port = block.port(direction, int(index))
        except ValueError:
            port = None
        if port is None:
            kind = 'output' if direction == OUT else 'input'
            raise LineError(f"'{system.path}/{text}' is not an {kind} port")
        return port

    @staticmethod
    def _is_variant(block: Block) -> bool:
        return block.block_type == 'SubSystem' and block.params.get('Variant') == 'on'

    def _variant_choices(self, block: Block) -> list[str]:
        if not self._is_variant(block) or block.subsystem is None:
            return []
        return [b.name for b in block.subsystem.blocks.values()
                if b.block_type in VARIANT_CHOICE_TYPES]

    # --- building from parsed files ---------------------------------------

    def _build(self, name, description, model_file) -> BlockDiagram:
        diagram = BlockDiagram(name, description.get('kind') or 'model', str(model_file))
        self._fill(diagram.root, description['system'])
        return diagram

    def _fill(self, system: System, desc: dict) -> None:
        for b in desc['blocks']:
            block = self._make_block(system, b)
            system.add(block)

        for line_desc in desc['lines']:
            self._make_line(system, line_desc)

    def _make_block(self, system: System, desc: dict) -> Block:
        params = dict(desc['params'])
        block_type = desc['type']

        # Saved library links become linked subsystems
        if block_type == 'Reference':
            block_type = 'SubSystem'
            params.setdefault('ReferenceBlock', params.get('SourceBlock', ''))

        if block_type == 'ModelReference' and not params.get('ModelName'):
            model_name = params.get('ModelNameDialog') or params.get('ModelFile') or ''
            params['ModelName'] = _strip_extension(model_name)

        position = desc.get('position')
        if not position or len(position) != 4:
            position = list(DEFAULT_POSITION)

        block = Block(desc['name'], block_type, system, sid=desc.get('sid', ''),
                      params=params, position=position)

        if desc.get('system') is not None:
            block.subsystem = System(block.name, system.diagram, parent_block=block)
            self._fill(block.subsystem, desc['system'])

        ports = desc.get('ports')
        if ports is None:
            ports = self._default_ports(block)
        block.set_port_counts(*ports)

        if self._is_variant(block):
            choices = self._variant_choices(block)
            active = params.get('ActiveVariant') or params.get('LabelModeActiveChoice')
            if active not in choices:
                active = choices[0] if choices else ''
            block.params['ActiveVariant'] = active

        return block

    @staticmethod
    def _default_ports(block: Block):
        if block.subsystem is not None:
            children = block.subsystem.blocks.values()
            return (sum(1 for b in children if b.block_type == 'Inport'),
                    sum(1 for b in children if b.block_type == 'Outport'))
        return config.DEFAULT_PORTS.get(block.block_type, config.FALLBACK_PORTS)

    @staticmethod
    def _make_line(system: System, desc: dict) -> None:
        src_name, src_index = desc['src']
        src_block = system.blocks.get(src_name)
        src_port = src_block.port(OUT, src_index) if src_block else None
        if src_port is None:
            logger.debug("Dropping line from unknown port %s/%s in %s",
                         src_name, src_index, system.path)
            return

        line = src_port.line
        if line is None:
            line = Line(system, src_port)
            src_port.line = line
            system.lines.append(line)

        for dst_name, dst_index in desc['dsts']:
            dst_block = system.blocks.get(dst_name)
            dst_port = dst_block.port(IN, dst_index) if dst_block else None
            if dst_port is not None and dst_port.line is None:
                line.connect(dst_port)


def _strip_extension(name: str) -> str:
    path = Path(name)
    if path.suffix.lower() in config.MODEL_EXTENSIONS:
        return path.stem
    return name
