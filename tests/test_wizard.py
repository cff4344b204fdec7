"""Test the interactive configuration wizard.

Tests for nebulae.wizard (scripted answers, no terminal):
    - All-default answers reproduce the default settings
    - Palette × saturation × definition → per-channel limits
    - Invalid answers re-prompt; q, EOF and "no" cancel

Test cases:
    - test_defaults_match_default_settings()
    - test_custom_choices()
    - test_thread_count_left_unset()
    - test_invalid_answers_reprompt()
    - test_quit_cancels()
    - test_eof_cancels()
    - test_rejecting_summary_cancels()

Run:
    pytest tests/test_wizard.py -v
"""

import pytest

from nebulae import wizard
from nebulae.utils.validators import default_render_settings


def _scripted(*answers):
    """input() replacement returning the given answers, then EOF."""
    remaining = list(answers)
    prompts = []

    def fake_input(prompt):
        prompts.append(prompt)
        if not remaining:
            raise EOFError
        return remaining.pop(0)

    fake_input.prompts = prompts
    return fake_input


def _quiet(_):
    pass


def test_defaults_match_default_settings():
    """Pressing enter everywhere gives the default render."""
    settings = wizard.run_wizard(_scripted("", "", "", "", "", ""), _quiet, thread_count=4)
    defaults = default_render_settings()

    assert settings.limits == defaults.limits == (7740, 2580, 860)
    assert settings.samples_per_pass_channel == defaults.samples_per_pass_channel
    assert settings.resolution == defaults.resolution
    assert settings.passes == defaults.passes
    assert settings.curve == defaults.curve
    assert settings.thread_count == 4


def test_custom_choices():
    """Cyber-pink × Intense × Harsh: (2500·8, 25·8, 250·8)."""
    settings = wizard.run_wizard(_scripted("3", "3", "3", "1", "1", "y"), _quiet, thread_count=2)

    assert settings.limits == (20_000, 200, 2_000)
    assert settings.resolution == 1024
    assert settings.samples_per_pass_channel == 100_000


def test_thread_count_left_unset():
    """Without an explicit count the settings carry none, so saved YAML omits it."""
    settings = wizard.run_wizard(_scripted("", "", "", "", "", ""), _quiet)
    assert settings.thread_count is None
    assert "thread_count" not in settings.to_yaml_dict()


def test_invalid_answers_reprompt():
    """Out-of-range and non-numeric answers ask again."""
    output = []
    fake_input = _scripted("9", "abc", "0", "2", "", "", "", "", "yes")
    settings = wizard.run_wizard(fake_input, output.append, thread_count=1)

    # Blue-ish (0, 1, 2) over Warm (215, 645, 1935) × 4
    assert settings.limits == (860, 2580, 7740)
    assert sum("Please answer 1-4" in line for line in output) == 3
    assert len(fake_input.prompts) == 9


def test_quit_cancels():
    assert wizard.run_wizard(_scripted("1", "q"), _quiet) is None


def test_eof_cancels():
    assert wizard.run_wizard(_scripted("1", "1"), _quiet) is None


def test_rejecting_summary_cancels():
    output = []
    result = wizard.run_wizard(_scripted("", "", "", "", "", "n"), output.append, thread_count=1)

    assert result is None
    assert any("Escape limits:" in line for line in output)


def test_select_marks_default():
    output = []
    value = wizard.select("Definition", wizard.DEFINITIONS, 1, _scripted(""), output.append)

    assert value == 4
    assert output[0] == "Definition:"
    assert output[2] == " * 2) Bright"


def test_select_raises_on_quit():
    with pytest.raises(wizard.WizardCancelled):
        wizard.select("Palette", wizard.PALETTES, 0, _scripted("Q"), _quiet)


@pytest.mark.parametrize("answer,default,expected", [
    ("", True, True),
    ("", False, False),
    ("y", False, True),
    ("YES", False, True),
    ("n", True, False),
    ("maybe", True, False),
])
def test_confirm(answer, default, expected):
    assert wizard.confirm("Go?", default, _scripted(answer)) is expected


def test_confirm_eof_is_no():
    assert wizard.confirm("Go?", True, _scripted()) is False
