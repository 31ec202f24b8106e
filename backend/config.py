import os

MODEL_EXTENSIONS = ('.slx', '.mdl')

# Sink/display/logging blocks never need their ports wired
SKIP_BLOCK_TYPES = frozenset({
    'Scope', 'Display', 'ToWorkspace', 'ToFile', 'FromWorkspace', 'FromFile',
})

GROUND_SOURCE = 'built-in/Ground'
TERMINATOR_SOURCE = 'built-in/Terminator'

STUB_OFFSET = 100
STUB_HALF_WIDTH = 20
STUB_HALF_HEIGHT = 10

# Default value Simulink shows in an unconfigured Model block
PLACEHOLDER_MODEL_NAME = 'ModelName'

# [inputs, outputs] used when a saved block omits its Ports entry
DEFAULT_PORTS = {
    'Inport':        (0, 1),
    'Outport':       (1, 0),
    'Ground':        (0, 1),
    'Terminator':    (1, 0),
    'Goto':          (1, 0),
    'From':          (0, 1),
    'Constant':      (0, 1),
    'Step':          (0, 1),
    'SineWave':      (0, 1),
    'Clock':         (0, 1),
    'FromWorkspace': (0, 1),
    'FromFile':      (0, 1),
    'Scope':         (1, 0),
    'Display':       (1, 0),
    'ToWorkspace':   (1, 0),
    'ToFile':        (1, 0),
    'SubSystem':     (0, 0),
    'ModelReference': (0, 0),
}
FALLBACK_PORTS = (1, 1)

UPLOAD_FOLDER = os.environ.get(
    'UPLOAD_FOLDER', os.path.join(os.path.dirname(__file__), 'uploads')
)
PORT = int(os.environ.get('PORT', 8080))
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO').upper()
