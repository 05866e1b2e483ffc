"""
Tests for LedgerChat Configuration
"""

from ledgerchat.config import Config, create_default_config, load_config
from ledgerchat.core.address import Address, DEFAULT_PROGRAM_ID
from ledgerchat.core.channels import DEFAULT_APPEND_RETRIES
from ledgerchat.core.history import DEFAULT_MAX_STEPS


class TestConfig:
    """Tests for loading and validating configuration."""

    def test_defaults_are_valid(self):
        config = Config()

        assert config.validate() == []
        assert config.program.address == DEFAULT_PROGRAM_ID
        assert config.chain.record_capacity == 1200

    def test_defaults_match_service(self):
        config = Config()

        assert config.chain.append_retries == DEFAULT_APPEND_RETRIES
        assert config.chain.max_traversal_steps == DEFAULT_MAX_STEPS

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "absent.toml")

        assert config == Config()

    def test_load_sections(self, tmp_path):
        program = Address(bytes([7]) * 32)
        path = tmp_path / "config.toml"
        path.write_text(
            "[program]\n"
            f'program_id = "{program}"\n'
            "\n"
            "[chain]\n"
            "max_payload_bytes = 100\n"
            "append_retries = 5\n"
            "\n"
            "[ledger]\n"
            'path = "chat.db"\n'
        )

        config = load_config(path)

        assert config.program.address == program
        assert config.chain.max_payload_bytes == 100
        assert config.chain.append_retries == 5
        assert config.chain.record_capacity == 1200
        assert config.ledger.path == "chat.db"
        assert config.validate() == []

    def test_save_and_reload(self, tmp_path):
        path = tmp_path / "config.toml"
        config = Config()
        config.chain.max_traversal_steps = 50
        config.logging.level = "DEBUG"

        config.save(path)

        assert load_config(path) == config

    def test_create_default_config(self, tmp_path):
        path = tmp_path / "config.toml"

        create_default_config(path)

        assert path.exists()
        assert load_config(path) == Config()

    def test_invalid_program_id(self):
        config = Config()
        config.program.program_id = "not-base58!"

        errors = config.validate()

        assert any("program_id" in e for e in errors)

    def test_short_program_id(self):
        config = Config()
        config.program.program_id = "abc"

        assert any("program_id" in e for e in config.validate())

    def test_invalid_chain_settings(self):
        config = Config()
        config.chain.record_capacity = 50
        config.chain.max_traversal_steps = 0
        config.chain.append_retries = -1

        errors = config.validate()

        assert len(errors) == 3

    def test_payload_larger_than_record(self):
        config = Config()
        config.chain.max_payload_bytes = 1200

        assert any("max_payload_bytes" in e for e in config.validate())

    def test_invalid_log_level(self):
        config = Config()
        config.logging.level = "LOUD"

        assert any("logging.level" in e for e in config.validate())
