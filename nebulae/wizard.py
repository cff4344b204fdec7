"""Interactive configuration wizard.

Walks the user through a handful of menus on the terminal and builds a
validated RenderSettings:

    Palette     which channel gets which iteration limit
    Saturation  the three base limits
    Definition  multiplier applied to the base limits
    Resolution  image size
    Quality     samples per channel per pass

Channel i gets `saturation[palette[i]] * definition`. Passes and curve come
from the defaults. The thread count is left unset, so a saved config renders
with whatever parallelism the machine running it has.

Answers are menu numbers; an empty answer keeps the default, `q` (or EOF)
cancels and returns None.
"""

import logging
from typing import Callable, List, Optional, Sequence, Tuple, TypeVar

from nebulae.utils.validators import RenderSettings, default_render_settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

PALETTES: List[Tuple[str, Tuple[int, int, int]]] = [
    ("Nebulous", (2, 1, 0)),
    ("Blue-ish", (0, 1, 2)),
    ("Cyber-pink", (2, 0, 1)),
    ("Cyber-purple", (1, 0, 2)),
]

SATURATIONS: List[Tuple[str, Tuple[int, int, int]]] = [
    ("Cloudy (x2)", (400, 800, 1_600)),
    ("Warm (x3)", (215, 645, 1_935)),
    ("Intense (x10)", (25, 250, 2_500)),
]

DEFINITIONS: List[Tuple[str, int]] = [
    ("Faded", 2),
    ("Bright", 4),
    ("Harsh", 8),
]

RESOLUTIONS: List[Tuple[str, int]] = [
    ("Small (1024)", 1 << 10),
    ("Medium (2048)", 1 << 11),
    ("Large (4096)", 1 << 12),
    ("Massive (8192)", 1 << 13),
    ("Love knows no bounds (16 384)", 1 << 14),
]

QUALITIES: List[Tuple[str, int]] = [
    ("Draft", 100_000),
    ("Normal", 1_000_000),
    ("Smooooth", 10_000_000),
]

InputFn = Callable[[str], str]
OutputFn = Callable[[str], None]


class WizardCancelled(Exception):
    """Raised internally when the user quits a menu."""

    pass


def select(
    prompt: str,
    items: Sequence[Tuple[str, T]],
    default: int,
    input_fn: InputFn = input,
    output_fn: OutputFn = print,
) -> T:
    """Show a numbered menu and return the chosen item's value.

    Re-asks on invalid answers. Raises WizardCancelled on `q` or EOF.
    """
    output_fn(f"{prompt}:")
    for i, (label, _) in enumerate(items, 1):
        marker = "*" if i - 1 == default else " "
        output_fn(f" {marker} {i}) {label}")

    while True:
        try:
            answer = input_fn(f"{prompt} [{default + 1}]: ").strip().lower()
        except EOFError:
            raise WizardCancelled() from None
        if answer == "q":
            raise WizardCancelled()
        if answer == "":
            return items[default][1]
        if answer.isdigit() and 1 <= int(answer) <= len(items):
            return items[int(answer) - 1][1]
        output_fn(f"Please answer 1-{len(items)}, or q to quit")


def confirm(prompt: str, default: bool = True, input_fn: InputFn = input) -> bool:
    """Yes/no question; EOF counts as no."""
    suffix = "[Y/n]" if default else "[y/N]"
    try:
        answer = input_fn(f"{prompt} {suffix}: ").strip().lower()
    except EOFError:
        return False
    if answer == "":
        return default
    return answer in ("y", "yes")


def run_wizard(
    input_fn: InputFn = input,
    output_fn: OutputFn = print,
    thread_count: Optional[int] = None,
) -> Optional[RenderSettings]:
    """Build RenderSettings from a terminal dialogue.

    Parameters
    ----------
    thread_count : int, optional
        Fixed render thread count; None leaves it to the machine at render time

    Returns
    -------
    Optional[RenderSettings]
        The chosen settings, or None if the user cancelled
    """
    defaults = default_render_settings()

    try:
        palette = select("Palette", PALETTES, 0, input_fn, output_fn)
        saturation = select("Saturation", SATURATIONS, 1, input_fn, output_fn)
        definition = select("Definition", DEFINITIONS, 1, input_fn, output_fn)
        resolution = select("Resolution", RESOLUTIONS, 1, input_fn, output_fn)
        samples = select("Quality", QUALITIES, 1, input_fn, output_fn)
    except WizardCancelled:
        logger.info("Wizard cancelled")
        return None

    settings = RenderSettings(
        limits=tuple(saturation[palette[i]] * definition for i in range(3)),
        samples_per_pass_channel=samples,
        passes=defaults.passes,
        resolution=resolution,
        curve=defaults.curve,
        thread_count=thread_count,
    )

    output_fn(settings.describe())
    if not confirm("Render like this?", True, input_fn):
        logger.info("Wizard settings rejected")
        return None
    return settings
