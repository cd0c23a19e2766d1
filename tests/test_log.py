import pytest

from driftecs.log import LogLevel, format_line, log


def test_format_line_info_label():
    assert format_line(LogLevel.INFO, "hello") == "[INFO]  hello"


def test_format_line_error_label():
    assert format_line(LogLevel.ERROR, "bad") == "[ERROR] bad"


@pytest.mark.parametrize("level, label", [(-5, "[TRACE]"), (99, "[ERROR]")])
def test_levels_are_clamped(level, label):
    assert format_line(level, "x").startswith(label)


def test_log_writes_formatted_line_to_stderr(capsys):
    log(LogLevel.WARN, "%d items in %s", 3, "bag")
    captured = capsys.readouterr()
    assert captured.err == format_line(LogLevel.WARN, "3 items in bag") + "\n"
    assert captured.out == ""


def test_log_without_args_keeps_percent(capsys):
    log(LogLevel.DEBUG, "100%")
    assert capsys.readouterr().err.endswith("100%\n")


def test_labels_follow_level_order():
    levels = sorted(LogLevel)
    assert [format_line(level, "m") for level in levels] == [
        "[TRACE] m",
        "[DEBUG] m",
        "[INFO]  m",
        "[WARN]  m",
        "[ERROR] m",
    ]