"""Tests for placeholder substitution."""

from datetime import datetime

from runner.src.models.context import RunContext
from runner.src.services.variables import format_timestamp, resolve_variables

NOW = datetime(2024, 3, 5, 7, 8, 9)

def test_format_timestamp():
    assert format_timestamp(NOW) == "2024-03-05-07-08-09"

def test_loop_placeholders():
    context = RunContext(time_start="start").for_iteration(2, 5)
    assert resolve_variables("echo $(loop_index) of $(loop_total)", context, NOW) == "echo 2 of 5"

def test_loop_placeholders_default_outside_loop():
    context = RunContext(time_start="start")
    assert resolve_variables("$(loop_index)/$(loop_total)", context, NOW) == "1/1"

def test_time_placeholders():
    context = RunContext(time_start="2024-01-01-00-00-00")
    result = resolve_variables("log_$(time_start)_$(time_current).txt", context, NOW)
    assert result == "log_2024-01-01-00-00-00_2024-03-05-07-08-09.txt"

def test_every_occurrence_replaced():
    context = RunContext(time_start="s").for_iteration(3, 4)
    assert resolve_variables("$(loop_index)-$(loop_index)", context, NOW) == "3-3"

def test_unknown_placeholders_left_alone():
    context = RunContext(time_start="s")
    assert resolve_variables("echo $(HOME) $(loop_count)", context, NOW) == "echo $(HOME) $(loop_count)"

def test_substituted_values_not_reexpanded():
    context = RunContext(time_start="$(loop_index)").for_iteration(7, 9)
    assert resolve_variables("$(time_start)", context, NOW) == "$(loop_index)"

def test_template_without_placeholders():
    context = RunContext(time_start="s")
    assert resolve_variables("sdb shell input keyevent 3", context, NOW) == "sdb shell input keyevent 3"
