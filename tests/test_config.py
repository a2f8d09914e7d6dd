import pytest

from madcat.config import ConfigError, get_config_opt, load_config


SAMPLE = """\
hostaddress = "127.1.1.1"
user = "hf"
path_to_save_icmp_data = "./ipm/" --Must end with trailing "/"
--bufsize = "1024" --optional
loglevel = 0 --optional: loglevel (0: Standard, 1: Debug)
"""


def _write(tmp_path, text):
    path = tmp_path / "config.lua"
    path.write_text(text, encoding="utf-8")
    return path


def test_sample_config(tmp_path):
    config = load_config(_write(tmp_path, SAMPLE))
    assert get_config_opt(config, "hostaddress") == "127.1.1.1"
    assert get_config_opt(config, "user") == "hf"
    assert get_config_opt(config, "path_to_save_icmp_data") == "./ipm/"
    assert get_config_opt(config, "loglevel") == "0"
    assert get_config_opt(config, "bufsize") == ""


def test_numbers_are_strings(tmp_path):
    config = load_config(_write(tmp_path, "a = 1024\nb = 1.5\nc = -3\nd = 0x10\ne = 2.0\n"))
    assert get_config_opt(config, "a") == "1024"
    assert get_config_opt(config, "b") == "1.5"
    assert get_config_opt(config, "c") == "-3"
    assert get_config_opt(config, "d") == str(0x10)
    assert get_config_opt(config, "e") == "2"


def test_booleans_and_tables_are_not_strings(tmp_path):
    text = 'flag = true\ntcpproxy = { [22] = {"192.168.2.1", 22}, ["80"] = {"10.0.0.1", 8080} }\n'
    config = load_config(_write(tmp_path, text))
    assert config["flag"] is True
    assert get_config_opt(config, "flag") == ""
    assert get_config_opt(config, "tcpproxy") == ""
    assert config["tcpproxy"][22] == {1: "192.168.2.1", 2: 22}
    assert config["tcpproxy"]["80"] == {1: "10.0.0.1", 2: 8080}


def test_named_table_fields(tmp_path):
    config = load_config(_write(tmp_path, "t = { name = 'x'; other = 2, }\n"))
    assert config["t"] == {"name": "x", "other": 2}


def test_string_escapes_and_long_strings(tmp_path):
    text = 'a = "tab\\there \\"q\\" \\65"\nb = [[\nline one\nline two]]\nc = [==[x]]y]==]\n'
    config = load_config(_write(tmp_path, text))
    assert get_config_opt(config, "a") == 'tab\there "q" A'
    assert get_config_opt(config, "b") == "line one\nline two"
    assert get_config_opt(config, "c") == "x]]y"


def test_block_comment_and_nil(tmp_path):
    text = '--[[ user = "ignored" ]]\nuser = "a"\nuser = nil\nraw = "tcp"\n'
    config = load_config(_write(tmp_path, text))
    assert "user" not in config
    assert get_config_opt(config, "raw") == "tcp"


def test_later_assignment_wins(tmp_path):
    config = load_config(_write(tmp_path, 'user = "a"\nuser = "b"; local x = 1\n'))
    assert get_config_opt(config, "user") == "b"
    assert get_config_opt(config, "x") == "1"


def test_syntax_error_reports_line(tmp_path):
    with pytest.raises(ConfigError, match="line 2"):
        load_config(_write(tmp_path, 'user = "a"\nuser "b"\n'))


def test_unterminated_string(tmp_path):
    with pytest.raises(ConfigError):
        load_config(_write(tmp_path, 'user = "a\n'))


def test_missing_value(tmp_path):
    with pytest.raises(ConfigError, match="end of file"):
        load_config(_write(tmp_path, "user =\n"))


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError):
        load_config(tmp_path / "absent.lua")


def test_get_config_opt_on_plain_mapping():
    assert get_config_opt({"x": "y"}, "x") == "y"
    assert get_config_opt({}, "x") == ""