"""
Unit Tests for Configuration Loader

Priority: environment > user file > project file > defaults
"""

import pytest
import yaml

from quant_desk.config_loader import ConfigLoader


@pytest.fixture(autouse=True)
def clear_env(monkeypatch):
    for var in ('QUANT_DESK_DATABASE_BACKEND', 'QUANT_DESK_DATABASE_PATH',
                'QUANT_DESK_DATABASE_PORT', 'QUANT_DESK_API_DEBUG'):
        monkeypatch.delenv(var, raising=False)


def write_yaml(path, data):
    path.write_text(yaml.safe_dump(data))
    return path


class TestConfigLoader:
    """Test layered configuration"""

    def test_defaults_when_no_files(self, tmp_path):
        config = ConfigLoader(tmp_path / 'none.yaml', tmp_path / 'none_user.yaml')

        assert config.get('database.backend') == 'sqlite'
        assert config.get('auth.session_days') == 7
        assert config.get('missing.key', 'fallback') == 'fallback'

    def test_project_file_overrides_defaults(self, tmp_path):
        project = write_yaml(tmp_path / 'app.yaml', {'database': {'path': '/tmp/x.db'}})
        config = ConfigLoader(project, tmp_path / 'none_user.yaml')

        assert config.get('database.path') == '/tmp/x.db'
        assert config.get('database.backend') == 'sqlite'

    def test_user_file_overrides_project(self, tmp_path):
        project = write_yaml(tmp_path / 'app.yaml', {'database': {'path': 'project.db'}})
        user = write_yaml(tmp_path / 'user.yaml', {'database': {'path': 'user.db'}})

        assert ConfigLoader(project, user).get('database.path') == 'user.db'

    def test_environment_overrides_files(self, tmp_path, monkeypatch):
        user = write_yaml(tmp_path / 'user.yaml', {'database': {'backend': 'sqlite', 'port': 1}})
        monkeypatch.setenv('QUANT_DESK_DATABASE_BACKEND', 'postgres')
        monkeypatch.setenv('QUANT_DESK_DATABASE_PORT', '6543')
        monkeypatch.setenv('QUANT_DESK_API_DEBUG', 'true')

        config = ConfigLoader(tmp_path / 'none.yaml', user)

        assert config.get('database.backend') == 'postgres'
        assert config.get('database.port') == 6543
        assert config.get('api.debug') is True
        assert config.get_database_config()['backend'] == 'postgres'

    def test_invalid_yaml_is_ignored(self, tmp_path):
        bad = tmp_path / 'bad.yaml'
        bad.write_text("database: [unclosed")

        assert ConfigLoader(bad, tmp_path / 'none_user.yaml').get('database.backend') == 'sqlite'
