from harbor.PARSERS.env_parser import EnvParser


def test_parse_from_string():
    content = (
        "KEY1=VALUE1\n"
        "# This is a comment\n"
        "KEY3=\"VALUE3\" # Trailing comment\n"
        "KEY4='VALUE4'\n"
        "export KEY6=exported\n"
        "KEY5\n"
    )
    env = EnvParser.parse_from_string(content)
    assert env['KEY1'] == 'VALUE1'
    assert env['KEY3'] == 'VALUE3'
    assert env['KEY4'] == 'VALUE4'
    assert env['KEY6'] == 'exported'
    assert 'KEY5' not in env


def test_parse(tmp_path):
    env_file = tmp_path / '.env'
    env_file.write_text("DATABASE_URL=postgres://db:5432/app\nEMPTY=\n")
    env = EnvParser.parse(str(env_file))
    assert env == {'DATABASE_URL': 'postgres://db:5432/app', 'EMPTY': ''}
