from click.testing import CliRunner

from camlink.mcp_server import main


def test_main_help_names_camlink():
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    assert "camlink" in result.output
    assert "--http" in result.output
