import pytest

from engine.errors import (
    BlockNotFoundError,
    DuplicateBlockError,
    InvalidParameterError,
    LineError,
    ModelNotFoundError,
    UnknownParameterError,
    VariantError,
)
from engine.host import ModelHost
from model_builders import block, line, model_ref, system, write_mdl


@pytest.fixture
def top(models_dir, workspace):
    sub = system('Sub', blocks=[
        block('Inport', 'In1'),
        block('Gain', 'G'),
        block('Outport', 'Out1'),
        model_ref('Deep', 'child'),
    ], lines=[line('In1', 1, ('G', 1)), line('G', 1, ('Out1', 1))])
    write_mdl(models_dir, 'top', blocks=[
        block('Constant', 'C'),
        block('SubSystem', 'Sub', system=sub),
        block('Terminator', 'T'),
    ], lines=[line('C', 1, ('Sub', 1)), line('Sub', 1, ('T', 1))])
    workspace.load_system('top')
    return workspace


def test_workspace_satisfies_host_protocol(workspace):
    assert isinstance(workspace, ModelHost)


def test_load_by_name_and_by_path(models_dir, workspace, tmp_path):
    write_mdl(models_dir, 'a')
    other = tmp_path / 'elsewhere'
    other.mkdir()
    b_file = write_mdl(other, 'b')

    assert workspace.load_system('a') == 'a'
    assert workspace.load_system(str(b_file)) == 'b'
    assert workspace.is_loaded('a') and workspace.is_loaded('b')
    assert other in workspace.search_path
    assert workspace.locate_model('b') == b_file


def test_load_missing_model(workspace):
    with pytest.raises(ModelNotFoundError):
        workspace.load_system('nowhere')
    assert not workspace.is_loaded('nowhere')


def test_close_system(top):
    top.close_system('top')
    top.close_system('never-loaded')
    assert not top.is_loaded('top')


def test_find_blocks_immediate_and_recursive(top):
    assert top.find_blocks('top') == ['top/C', 'top/Sub', 'top/T']
    assert top.find_blocks('top/Sub', 'Gain') == ['top/Sub/G']
    assert top.find_blocks('top', 'ModelReference') == []
    assert top.find_blocks('top', 'ModelReference', recursive=True) == ['top/Sub/Deep']


def test_find_blocks_on_leaf_block_fails(top):
    with pytest.raises(BlockNotFoundError):
        top.find_blocks('top/C')


def test_block_params(top):
    assert top.get_param('top/Sub/G', 'Name') == 'G'
    assert top.get_param('top/Sub/G', 'Parent') == 'top/Sub'
    assert top.get_param('top/Sub/G', 'BlockType') == 'Gain'
    assert top.get_param('top/Sub/G', 'Position') == [100.0, 100.0, 130.0, 130.0]
    assert top.get_param('top/Sub/Deep', 'ModelName') == 'child'
    assert top.get_param('top/C', 'ReferenceBlock') == ''
    assert top.get_param('top/C', 'Variant') == 'off'
    assert top.get_param('top', 'BlockType') == 'block_diagram'
    assert top.get_param('top', 'BlockDiagramType') == 'model'
    assert top.get_param('top', 'FileName').endswith('top.mdl')


def test_unknown_param(top):
    with pytest.raises(UnknownParameterError):
        top.get_param('top/C', 'NoSuchThing')


def test_port_counts_defaults_and_derived(top):
    assert top.get_param('top/C', 'Ports') == [0, 1]
    assert top.get_param('top/T', 'Ports') == [1, 0]
    # Sub saved without Ports: counted from its Inport/Outport blocks
    assert top.get_param('top/Sub', 'Ports') == [1, 1]


def test_lines_attach_to_ports(top):
    handles = top.get_param('top/Sub/G', 'PortHandles')
    assert top.get_line(handles.inport[0]) is not None
    assert top.get_line(handles.outport[0]) is not None

    deep = top.get_param('top/Sub/Deep', 'PortHandles')
    assert deep.inport == () and deep.outport == ()


def test_add_block_and_line(top):
    path = top.add_block('built-in/Ground', 'top/Sub/G0')
    assert path == 'top/Sub/G0'
    assert top.get_param(path, 'Ports') == [0, 1]

    with pytest.raises(DuplicateBlockError):
        top.add_block('built-in/Ground', 'top/Sub/G0')
    with pytest.raises(BlockNotFoundError):
        top.add_block('simulink/Sources/Ground', 'top/Sub/G1')

    top.set_param(path, 'Position', [0, 0, 40, 20])
    assert top.get_param(path, 'Position') == [0.0, 0.0, 40.0, 20.0]

    # G's input is already driven by In1
    with pytest.raises(LineError):
        top.add_line('top/Sub', 'G0/1', 'G/1')

    top.add_block('built-in/Terminator', 'top/Sub/T0')
    line_obj = top.add_line('top/Sub', 'G0/1', 'T0/1')
    t0 = top.get_param('top/Sub/T0', 'PortHandles')
    assert top.get_line(t0.inport[0]) is line_obj


def test_add_line_branches_from_driven_output(top):
    top.add_block('built-in/Terminator', 'top/Sub/Extra')
    first = top.get_line(top.get_param('top/Sub/G', 'PortHandles').outport[0])

    branched = top.add_line('top/Sub', 'G/1', 'Extra/1')

    assert branched is first
    assert len(first.destinations) == 2


def test_add_line_rejects_missing_port(top):
    top.add_block('built-in/Ground', 'top/Sub/Src')
    with pytest.raises(LineError):
        top.add_line('top/Sub', 'Src/2', 'G/1')
    with pytest.raises(LineError):
        top.add_line('top/Sub', 'Nope/1', 'G/1')


def test_set_param_read_only(top):
    with pytest.raises(InvalidParameterError):
        top.set_param('top/C', 'BlockType', 'Gain')
    with pytest.raises(InvalidParameterError):
        top.set_param('top/C', 'Position', [1, 2, 3])


def test_variant_choices_and_activation(models_dir, workspace):
    variant = system('V', blocks=[
        block('Inport', 'In1'),
        block('SubSystem', 'Fast', system=system('Fast')),
        block('SubSystem', 'Slow', system=system('Slow')),
    ])
    write_mdl(models_dir, 'vm', blocks=[
        block('SubSystem', 'V', system=variant, Variant='on', LabelModeActiveChoice='Slow'),
    ])
    workspace.load_system('vm')

    assert workspace.get_param('vm/V', 'VariantChoices') == ['Fast', 'Slow']
    assert workspace.get_param('vm/V', 'ActiveVariant') == 'Slow'

    workspace.activate_variant('vm/V', 'Fast')
    assert workspace.get_param('vm/V', 'ActiveVariantBlock') == 'vm/V/Fast'

    with pytest.raises(VariantError):
        workspace.activate_variant('vm/V', 'Missing')
    with pytest.raises(VariantError):
        workspace.activate_variant('vm/V/Fast', 'Fast')


def test_library_links_become_reference_subsystems(models_dir, workspace):
    write_mdl(models_dir, 'top', blocks=[
        block('Reference', 'Link', ports=(1, 1), SourceBlock='lib/Filter'),
        block('ModelReference', 'M', ModelNameDialog='plant.slx'),
    ])
    workspace.load_system('top')

    assert workspace.get_param('top/Link', 'BlockType') == 'SubSystem'
    assert workspace.get_param('top/Link', 'ReferenceBlock') == 'lib/Filter'
    assert workspace.get_param('top/M', 'ModelName') == 'plant'
