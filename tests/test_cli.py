"""
Tests for LedgerChat Command Line
"""

import pytest

from ledgerchat.__main__ import main
from ledgerchat.core.address import DEFAULT_PROGRAM_ID, derive_channel_address
from ledgerchat.core.codec import encode
from ledgerchat.core.records import ChannelRecord


def run(argv):
    with pytest.raises(SystemExit) as exc:
        main(argv)
    return exc.value.code


class TestCommands:
    """Tests for CLI subcommands."""

    def setup_method(self):
        """Set up test fixtures."""
        self.config_path = None

    def write_config(self, tmp_path):
        self.config_path = tmp_path / "config.toml"
        self.config_path.write_text(
            "[ledger]\n"
            f'path = "{(tmp_path / "ledger.db").as_posix()}"\n'
            "\n"
            "[chain]\n"
            "max_payload_bytes = 100\n"
        )
        return str(self.config_path)

    def test_no_command(self, capsys):
        assert run([]) == 1

    def test_address(self, tmp_path, capsys):
        code = run(["--config", str(tmp_path / "none.toml"), "address", "general"])

        assert code == 0
        out = capsys.readouterr().out.strip()
        assert out == str(derive_channel_address(DEFAULT_PROGRAM_ID, "general"))

    def test_address_invalid_name(self, tmp_path, capsys):
        code = run(["--config", str(tmp_path / "none.toml"), "address", " padded"])

        assert code == 1

    def test_decode_channel(self, tmp_path, capsys):
        data = encode(ChannelRecord(name="general")).hex()

        code = run(["--config", str(tmp_path / "none.toml"), "decode", "channel", data])

        out = capsys.readouterr().out
        assert code == 0
        assert "general" in out
        assert "(none)" in out

    def test_decode_truncated(self, tmp_path, capsys):
        code = run(["--config", str(tmp_path / "none.toml"), "decode", "message", "0102"])

        assert code == 1
        assert "truncated" in capsys.readouterr().out

    def test_post_and_read(self, tmp_path, capsys):
        config = self.write_config(tmp_path)
        text = "x" * 250

        assert run(["--config", config, "post", "general", "first"]) == 0
        assert run(["--config", config, "post", "general", text]) == 0
        capsys.readouterr()

        assert run(["--config", config, "read", "general", "--width", "300"]) == 0
        lines = capsys.readouterr().out.strip().splitlines()

        assert len(lines) == 2
        assert lines[0].endswith(text)
        assert "[3 parts]" in lines[0]
        assert lines[1].endswith("first")

    def test_read_missing_channel(self, tmp_path, capsys):
        config = self.write_config(tmp_path)

        assert run(["--config", config, "read", "nowhere"]) == 1
        assert "missing_record" in capsys.readouterr().out

    def test_config_init_and_validate(self, tmp_path, capsys):
        path = str(tmp_path / "config.toml")

        assert run(["--config", path, "config", "--init"]) == 0
        assert run(["--config", path, "config", "--init"]) == 1
        assert run(["--config", path, "config", "--validate"]) == 0
        assert "Configuration is valid." in capsys.readouterr().out

    def test_invalid_config_refused(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[chain]\nmax_traversal_steps = 0\n")

        assert run(["--config", str(path), "address", "general"]) == 1
