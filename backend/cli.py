"""Interactive entry points: find-reference-models and connect-unconnected-blocks."""

import logging
import sys
import traceback
from pathlib import Path

import click

import config
from engine.workspace import ModelWorkspace
from logging_config import setup_logging
from maintenance.port_connector import connect_unconnected_blocks as repair_ports
from maintenance.reference_finder import ReferenceModelFinder

logger = logging.getLogger(__name__)

RULE = '====================================='


def run_reference_finder(model_file, workspace=None):
    """Find every reference model below the given file; returns the ordered list."""
    model_file = Path(model_file)
    workspace = workspace or _workspace_for(model_file)
    model_name = model_file.stem

    logger.info("Searching for reference models...")
    logger.info(RULE)
    search_dirs = [model_file.parent, Path.cwd()]
    search = ReferenceModelFinder(workspace, search_dirs).find(model_name)
    models = search.reference_models

    logger.info("\n=== RESULTS ===")
    logger.info("Total reference models found: %d\n", len(models))
    if models:
        logger.info("Reference models list:")
        logger.info("---------------------")
        for i, name in enumerate(models, start=1):
            logger.info("%d. %s", i, name)
    else:
        logger.info("No reference models found in the selected model.")
    return models


def run_port_connector(model_file, workspace=None):
    """Wire every unconnected port below the given file; returns the ConnectionReport."""
    model_file = Path(model_file)
    workspace = workspace or _workspace_for(model_file)

    logger.info("Loading model: %s", model_file.stem)
    model_name = workspace.load_system(str(model_file))

    logger.info("Processing model and all subsystems...")
    logger.info(RULE)
    report = repair_ports(workspace, model_name)

    logger.info("\n=== RESULTS ===")
    logger.info("Unconnected input ports found: %d", report.unconnected_inputs)
    logger.info("Unconnected output ports found: %d", report.unconnected_outputs)
    logger.info("Total connections made: %d", report.connections_made)
    if report.connections_made > 0:
        logger.info("\nModel has been modified in memory. Save it from the modeling tool to keep the changes.")
    else:
        logger.info("\nNo unconnected ports found. Model is already properly connected.")
    return report


def _workspace_for(model_file):
    return ModelWorkspace(search_path=[model_file.parent, Path.cwd()])


def _select_model_file():
    answer = click.prompt(
        'Select Simulink model file (*.slx, *.mdl)',
        default='', show_default=False,
        type=str,
    )
    if not answer:
        return None
    model_file = Path(answer).expanduser()
    if model_file.suffix.lower() not in config.MODEL_EXTENSIONS or not model_file.is_file():
        return None
    return model_file


def _run(title, action):
    setup_logging()
    logger.info("=== %s ===\n", title)

    model_file = _select_model_file()
    if model_file is None:
        logger.info("Error: No model file selected. Script terminated.")
        sys.exit(1)

    logger.info("Selected model: %s", model_file.name)
    logger.info("Full path: %s\n", model_file.resolve())

    workspace = _workspace_for(model_file)
    try:
        return action(model_file, workspace)
    except Exception as e:
        frame = traceback.extract_tb(e.__traceback__)[-1]
        logger.error("\nError occurred: %s", e)
        logger.error("Error location: %s (line %d)", frame.name, frame.lineno)
        workspace.close_system(model_file.stem)
        return None


@click.command()
def find_reference_models():
    """Recursively list every reference model of a Simulink model."""
    _run('Simulink Reference Model Finder', run_reference_finder)


@click.command()
def connect_unconnected_blocks():
    """Wire every unconnected port of a Simulink model to Ground/Terminator stubs."""
    _run('Simulink Unconnected Block Connector', run_port_connector)
