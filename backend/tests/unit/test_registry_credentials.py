"""
Unit tests for registry credentials utility.

Tests verify:
- Inline and anonymous configs return their own user/password
- Credentials files are read as YAML
- Platform secrets are read through the injected reader (bytes decoded)
- Unreadable or incomplete credential sources raise ConfigurationError
- The module imports cleanly before or after the registries package
"""

import pytest
from unittest.mock import Mock


class TestGetRegistryCredentials:
    """Tests for get_registry_credentials function"""

    def test_inline_credentials(self):
        """auth_type config returns the config's own credentials"""
        from registries.config import Config
        from utils.registry_credentials import get_registry_credentials

        config = Config(name="dh", auth_type="config", user="someone", password="secret")

        assert get_registry_credentials(config) == ("someone", "secret")

    def test_anonymous(self):
        from registries.config import Config
        from utils.registry_credentials import get_registry_credentials

        assert get_registry_credentials(Config(name="dh")) == ("", "")

    def test_credentials_file(self, tmp_path):
        """auth_type file reads username/password from YAML"""
        from registries.config import Config
        from utils.registry_credentials import get_registry_credentials

        # Arrange
        creds = tmp_path / "creds.yaml"
        creds.write_text("username: someone\npassword: secret\n")
        config = Config(name="dh", auth_type="file", auth_name=str(creds))

        # Act
        result = get_registry_credentials(config)

        # Assert
        assert result == ("someone", "secret")

    def test_missing_file(self, tmp_path):
        from registries.config import Config
        from registries.errors import ConfigurationError
        from utils.registry_credentials import get_registry_credentials

        config = Config(name="dh", auth_type="file", auth_name=str(tmp_path / "missing.yaml"))

        with pytest.raises(ConfigurationError, match="Unable to read credentials file"):
            get_registry_credentials(config)

    @pytest.mark.parametrize("content,message", [
        ("username: [unclosed\n", "Invalid YAML"),
        ("- someone\n- secret\n", "must be a mapping"),
        ("username: someone\n", "need both username and password"),
    ])
    def test_invalid_file(self, tmp_path, content, message):
        from registries.config import Config
        from registries.errors import ConfigurationError
        from utils.registry_credentials import get_registry_credentials

        creds = tmp_path / "creds.yaml"
        creds.write_text(content)
        config = Config(name="dh", auth_type="file", auth_name=str(creds))

        with pytest.raises(ConfigurationError, match=message):
            get_registry_credentials(config)

    def test_secret(self):
        """auth_type secret asks the reader for the named secret"""
        from registries.config import Config
        from utils.registry_credentials import get_registry_credentials

        reader = Mock(return_value={"username": b"someone", "password": b"secret"})
        config = Config(name="dh", auth_type="secret", auth_name="dh-creds")

        assert get_registry_credentials(config, reader) == ("someone", "secret")
        reader.assert_called_once_with("dh-creds")

    def test_secret_without_reader(self):
        from registries.config import Config
        from registries.errors import ConfigurationError
        from utils.registry_credentials import get_registry_credentials

        config = Config(name="dh", auth_type="secret", auth_name="dh-creds")

        with pytest.raises(ConfigurationError, match="no secret reader"):
            get_registry_credentials(config)

    def test_secret_reader_failure(self):
        """Reader errors are reported as configuration problems"""
        from registries.config import Config
        from registries.errors import ConfigurationError
        from utils.registry_credentials import get_registry_credentials

        reader = Mock(side_effect=KeyError("dh-creds"))
        config = Config(name="dh", auth_type="secret", auth_name="dh-creds")

        with pytest.raises(ConfigurationError, match="Unable to read secret"):
            get_registry_credentials(config, reader)

    def test_unknown_auth_type(self):
        from registries.config import Config
        from registries.errors import ConfigurationError
        from utils.registry_credentials import get_registry_credentials

        with pytest.raises(ConfigurationError, match="Unknown auth_type"):
            get_registry_credentials(Config(name="dh", auth_type="kerberos"))


class TestReadCredentialsFile:
    """Tests for read_credentials_file function"""

    def test_values_coerced_to_text(self, tmp_path):
        """Numeric YAML values still come back as strings"""
        from utils.registry_credentials import read_credentials_file

        creds = tmp_path / "creds.yaml"
        creds.write_text("username: 1234\npassword: 5678\n")

        assert read_credentials_file(str(creds)) == ("1234", "5678")


class TestImportOrder:
    """The credentials utility and the registries package import in either order"""

    @pytest.mark.parametrize("first,second", [
        ("utils.registry_credentials", "registries"),
        ("registries.registry", "utils.registry_credentials"),
    ])
    def test_fresh_interpreter(self, first, second):
        import os
        import subprocess
        import sys

        backend_dir = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
        code = f"import {first}\nimport {second}\nimport registries\nprint(registries.new_registry.__name__)"

        result = subprocess.run(
            [sys.executable, "-c", code],
            cwd=backend_dir,
            capture_output=True,
            text=True,
            timeout=60,
        )

        assert result.returncode == 0, result.stderr
        assert result.stdout.strip() == "new_registry"
