import pytest

from madcat.config import ConfigError
from madcat.icmp_cli import (
    IcmpSettings,
    OutOfRangeError,
    UsageError,
    main,
    parse_arguments,
    print_help_icmp,
)
from madcat.options import DEFAULT_BUFSIZE


def _write(tmp_path, text):
    path = tmp_path / "icmp.lua"
    path.write_text(text)
    return str(path)


def test_legacy_arguments_use_default_bufsize():
    settings = parse_arguments(["127.1.1.1", "./ipm/", "hf"])
    assert settings == IcmpSettings("127.1.1.1", "./ipm/", "hf", DEFAULT_BUFSIZE, 0)


def test_legacy_arguments_with_bufsize():
    settings = parse_arguments(["127.1.1.1", "./ipm/", "hf", "1024"])
    assert settings.bufsize == 1024
    assert settings.user == "hf"


def test_legacy_bufsize_reads_leading_digits():
    settings = parse_arguments(["127.1.1.1", "./ipm/", "hf", "512bytes"])
    assert settings.bufsize == 512


def test_config_file(tmp_path):
    path = _write(
        tmp_path,
        'hostaddress = "127.1.1.1"\n'
        'user = "hf"\n'
        'path_to_save_icmp_data = "./ipm/" --trailing slash\n'
        'bufsize = "1024" --optional\n'
        "loglevel = 1\n",
    )
    settings = parse_arguments([path])
    assert settings == IcmpSettings("127.1.1.1", "./ipm/", "hf", 1024, 1)


def test_config_file_defaults(tmp_path):
    path = _write(
        tmp_path,
        'hostaddress = "0.0.0.0"\nuser = "hf"\npath_to_save_icmp_data = "/tmp/"\n',
    )
    settings = parse_arguments([path])
    assert settings.bufsize == DEFAULT_BUFSIZE
    assert settings.loglevel == 0


def test_config_missing_mandatory(tmp_path):
    path = _write(tmp_path, 'hostaddress = "127.1.1.1"\npath_to_save_icmp_data = "./ipm/"\n')
    with pytest.raises(UsageError):
        parse_arguments([path])


def test_config_unparsable(tmp_path):
    path = _write(tmp_path, "hostaddress = = =\n")
    with pytest.raises(ConfigError):
        parse_arguments([path])


@pytest.mark.parametrize("argv", [[], ["a", "b"], ["a", "b", "c", "d", "e"]])
def test_wrong_argument_count(argv):
    with pytest.raises(UsageError):
        parse_arguments(argv)


def test_negative_bufsize_rejected():
    with pytest.raises(OutOfRangeError):
        parse_arguments(["127.1.1.1", "./ipm/", "hf", "-5"])


def test_main_version(capsys):
    assert main(["version"]) == 0
    assert "MADCAT" in capsys.readouterr().out


def test_main_usage(capsys):
    assert main([]) == -1
    assert "SYNTAX" in capsys.readouterr().err


def test_main_bufsize_out_of_range(capsys):
    assert main(["127.1.1.1", "./ipm/", "hf", "-5"]) == -2
    assert "Bufsize -5 out of range." in capsys.readouterr().err


def test_main_bad_config(tmp_path, capsys):
    path = _write(tmp_path, "user = {\n")
    assert main([path]) == 1
    assert "Error parsing config file" in capsys.readouterr().err


def test_main_incomplete_config(tmp_path, capsys):
    path = _write(tmp_path, 'user = "hf"\n')
    assert main([path]) == -1
    err = capsys.readouterr().err
    assert "Error in config file" in err
    assert "SYNTAX" in err


def test_print_help(capsys):
    print_help_icmp("prog")
    err = capsys.readouterr().err
    assert "prog path_to_config_file" in err
    assert str(DEFAULT_BUFSIZE) in err