import pytest

from engine.workspace import ModelWorkspace


@pytest.fixture
def models_dir(tmp_path):
    directory = tmp_path / 'models'
    directory.mkdir()
    return directory


@pytest.fixture
def workspace(models_dir):
    return ModelWorkspace(search_path=[models_dir])
