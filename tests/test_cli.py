import logging

import pytest
from click.testing import CliRunner

import cli
from logging_config import LOGGER_NAMES
from model_builders import block, model_ref, write_mdl


@pytest.fixture(autouse=True)
def reset_loggers():
    yield
    # The CLI binds handlers to the runner's temporary stdout
    for name in LOGGER_NAMES:
        logging.getLogger(name).handlers.clear()


def test_no_file_selected_terminates():
    result = CliRunner().invoke(cli.connect_unconnected_blocks, input='\n')

    assert result.exit_code == 1
    assert 'Error: No model file selected. Script terminated.' in result.output


def test_unrecognised_extension_terminates(tmp_path):
    other = tmp_path / 'notes.txt'
    other.write_text('hello')

    result = CliRunner().invoke(cli.find_reference_models, input=f'{other}\n')

    assert result.exit_code == 1
    assert 'No model file selected' in result.output


def test_connect_command_reports_counts(models_dir):
    path = write_mdl(models_dir, 'top', blocks=[block('Gain', 'G')])

    result = CliRunner().invoke(cli.connect_unconnected_blocks, input=f'{path}\n')

    assert result.exit_code == 0
    assert 'Selected model: top.mdl' in result.output
    assert 'Unconnected input ports found: 1' in result.output
    assert 'Unconnected output ports found: 1' in result.output
    assert 'Total connections made: 2' in result.output


def test_find_command_lists_models(models_dir):
    path = write_mdl(models_dir, 'A', blocks=[model_ref('r', 'B')])
    write_mdl(models_dir, 'B')

    result = CliRunner().invoke(cli.find_reference_models, input=f'{path}\n')

    assert result.exit_code == 0
    assert 'Total reference models found: 1' in result.output
    assert '1. B' in result.output


def test_failure_is_reported_not_raised(models_dir):
    path = models_dir / 'broken.mdl'
    path.write_text('not a model\n')

    result = CliRunner().invoke(cli.connect_unconnected_blocks, input=f'{path}\n')

    assert result.exit_code == 0
    assert 'Error occurred:' in result.output
    assert 'Error location:' in result.output


def test_run_functions_return_results(models_dir):
    top = write_mdl(models_dir, 'top', blocks=[block('Gain', 'G', ports=(1, 0)), model_ref('r', 'child')])
    write_mdl(models_dir, 'child')

    assert cli.run_reference_finder(top) == ['child']
    report = cli.run_port_connector(top)
    assert report.connections_made == 1
