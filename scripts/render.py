#!/usr/bin/env python3
"""Render entry point: config → multi-threaded Nebulabrot → PNG.

Runs the full pipeline:
    1. Resolve settings (YAML config, defaults, or the interactive wizard)
    2. Render every pass on `threads × 3` worker threads
    3. After each pass, write an intermediate PNG on a background thread
       (optionally throttled to one write per interval)
    4. Write the final PNG and wait for it before exiting

Refactored architecture:
    - render_main(settings, output_path, ...) → dict
        * Callable function (used by tests and other tools)
        * Returns: {output_path, maximum, passes, elapsed_s, intermediates_written}
    - CLI entry point: if __name__ == "__main__"

CLI:
    python scripts/render.py --output image.png
    python scripts/render.py --config configs/render.v1.yaml --threads 8 --no-intermediates
    python scripts/render.py --intermediate-interval 60 --log-file outputs/logs/render.log
    python scripts/render.py --log-file outputs/logs/render.log --log-max-bytes 1000000 --no-progress
    python scripts/render.py wizard --save-config my_render.yaml
    python scripts/render.py write-default --save-config configs/render.v1.yaml

Exit codes:
    0  success
    1  render or write failure, or wizard cancelled
    2  invalid configuration
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from tqdm import tqdm
from tqdm.contrib.logging import logging_redirect_tqdm

from nebulae.engine import NebulabrotRenderer, RenderProgress, RenderState, WorkerError
from nebulae.export import ImageWriter, IntervalSink
from nebulae.utils import logging_config, validators
from nebulae.utils.validators import ConfigError, RenderSettings
from nebulae.wizard import run_wizard

logger = logging.getLogger(__name__)


class ProgressBars:
    """Terminal view of RenderProgress events.

    Two tqdm bars: passes done over the whole render, and worker tasks done
    in the current pass. Use as the renderer's progress callback.
    """

    def __init__(self, passes: int, disable: bool = False, file=None):
        self.pass_bar = tqdm(
            total=passes, desc="Passes", unit="pass", position=0,
            bar_format='{l_bar}{bar}| {n_fmt}/{total_fmt} passes [{elapsed}<{remaining}{postfix}]',
            disable=disable, file=file,
        )
        self.task_bar = tqdm(
            total=0, desc="Pass -", unit="task", position=1, leave=False,
            disable=disable, file=file,
        )
        self._pass_index = 0

    def __call__(self, progress: RenderProgress) -> None:
        logger.debug(
            "%s (%d/%d tasks, maximum=%d)",
            progress.message, progress.completed_tasks, progress.total_tasks, progress.maximum
        )
        if progress.state is RenderState.RENDERING:
            if progress.pass_index != self._pass_index:
                # New pass: the previous one is fully merged
                self._pass_index = progress.pass_index
                self._advance(self.pass_bar, progress.pass_index - 1)
                self.task_bar.reset(total=progress.total_tasks)
                self.task_bar.set_description(f"Pass {progress.pass_index}/{progress.passes}")
            if self._pass_index:
                self._advance(self.task_bar, progress.completed_tasks)
        elif progress.state is RenderState.FINISHED:
            self._advance(self.pass_bar, progress.passes)
        self.pass_bar.set_postfix(maximum=progress.maximum)

    @staticmethod
    def _advance(bar, n: int) -> None:
        if n > bar.n:
            bar.update(n - bar.n)

    def close(self) -> None:
        self.task_bar.close()
        self.pass_bar.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def render_main(
    settings: RenderSettings,
    output_path: str = "image.png",
    render_intermediates: bool = True,
    intermediate_interval: float = 0.0,
    seed: Optional[int] = None,
    strategy: str = "merge",
    show_progress: bool = False,
) -> Dict[str, Any]:
    """Render with the given settings and write the PNG.

    Parameters
    ----------
    settings : RenderSettings
        Validated render configuration
    output_path : str
        PNG written after every pass (if enabled) and at the end
    render_intermediates : bool
        Write the image after every pass, default True
    intermediate_interval : float
        Minimum seconds between intermediate writes (0 = every pass)
    seed : int, optional
        Root seed, for reproducible renders
    strategy : str
        Histogram accumulation strategy, "merge" or "bump"
    show_progress : bool
        Draw pass and task progress bars on stderr, default False

    Returns
    -------
    Dict[str, Any]
        Results dict with:
            - output_path: str
            - maximum: int
            - passes: int
            - elapsed_s: float
            - intermediates_written: int

    Raises
    ------
    WorkerError
        If a render worker failed
    RuntimeError, OSError
        If the final PNG could not be written
    """
    logger.info("Rendering with settings:\n%s", settings.describe())

    with ImageWriter(output_path, settings.curve, settings.resolution) as writer:
        sink = None
        if render_intermediates:
            sink = IntervalSink(writer, intermediate_interval) if intermediate_interval > 0 else writer

        renderer = NebulabrotRenderer(settings, intermediates=sink, seed=seed, strategy=strategy)
        with ProgressBars(settings.passes, disable=not show_progress) as bars:
            renderer.set_progress_callback(bars)
            if show_progress:
                # Console log lines are printed above the bars
                with logging_redirect_tqdm():
                    result = renderer.render()
            else:
                result = renderer.render()

        # Queued behind any intermediate write still in flight
        final_path = writer.submit(result.flat, result.maximum).result()
        intermediates_written = writer.written - 1

    logger.info(f"Image written to {final_path}")

    return {
        'output_path': str(final_path),
        'maximum': result.maximum,
        'passes': result.passes,
        'elapsed_s': result.elapsed_s,
        'intermediates_written': intermediates_written,
    }


def _resolve_settings(args: argparse.Namespace) -> Optional[RenderSettings]:
    """Settings from the wizard, a config file, or the defaults."""
    if args.command == "wizard":
        settings = run_wizard()
        if settings is None:
            return None
        if args.save_config:
            # The thread count belongs to the machine, not the saved config
            portable = settings.model_copy(update={'thread_count': None})
            validators.dump_render_config(portable, args.save_config)
            logger.info(f"Wizard configuration saved to {args.save_config}")
    elif args.config:
        settings = validators.load_render_config(args.config)
    else:
        settings = validators.default_render_settings()

    if args.threads is not None:
        data = settings.to_yaml_dict()
        data['thread_count'] = args.threads
        settings = validators.parse_render_config(data, source="--threads")
    return settings


def _positive_int(text: str) -> int:
    value = int(text)
    if value <= 0:
        raise argparse.ArgumentTypeError(f"must be a positive integer, got {value}")
    return value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Render a Nebulabrot to an RGB PNG",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        default="image.png",
        help="File to write to (default: image.png)",
    )
    parser.add_argument(
        "-n", "--no-intermediates",
        action="store_true",
        help="Do not write intermediate images after each pass",
    )
    parser.add_argument(
        "-c", "--config",
        type=str,
        help="Render configuration file (YAML, render.v1 schema)",
    )
    parser.add_argument(
        "--threads",
        type=int,
        help="Render threads (default: config value or all cores)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        help="Root random seed (reproducible output)",
    )
    parser.add_argument(
        "--intermediate-interval",
        type=float,
        default=0.0,
        metavar="SECONDS",
        help="Minimum time between intermediate writes (default: every pass)",
    )
    parser.add_argument(
        "--strategy",
        choices=("merge", "bump"),
        default="merge",
        help="Histogram accumulation strategy (default: merge)",
    )
    parser.add_argument("--log-level", type=str, default="INFO", help="Logging level")
    parser.add_argument("--log-file", type=str, help="Also log to this file")
    parser.add_argument("--log-json", action="store_true", help="JSON lines in the log file")
    parser.add_argument(
        "--log-max-bytes",
        type=_positive_int,
        metavar="BYTES",
        help="Rotate the log file at this size (default: never)",
    )
    parser.add_argument(
        "--log-backups",
        type=_positive_int,
        default=3,
        help="Rotated log files to keep (default: 3)",
    )
    parser.add_argument(
        "--no-progress",
        action="store_true",
        help="Do not draw progress bars",
    )

    subparsers = parser.add_subparsers(dest="command")
    wizard = subparsers.add_parser("wizard", help="Choose settings interactively, then render")
    wizard.add_argument(
        "--save-config",
        type=str,
        help="Path to write the selected configuration to",
    )
    write_default = subparsers.add_parser(
        "write-default", help="Write the default configuration as YAML and exit"
    )
    write_default.add_argument(
        "--save-config",
        type=str,
        help="Path to write the default configuration to (stdout if unset)",
    )
    return parser


def main(argv: Optional[list] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    logging_config.setup_logging(
        args.log_level,
        args.log_file,
        json=args.log_json,
        max_bytes=args.log_max_bytes,
        backup_count=args.log_backups,
        context={"app": "nebulae"},
    )
    logging_config.install_excepthook()

    if args.command == "write-default":
        text = validators.dump_render_config(
            validators.default_render_settings(), args.save_config
        )
        if args.save_config:
            logger.info(f"Default configuration written to {args.save_config}")
        else:
            print(text, end="")
        return 0

    try:
        settings = _resolve_settings(args)
    except (ConfigError, FileNotFoundError) as e:
        logger.error(f"Invalid configuration: {e}")
        return 2
    if settings is None:
        logger.error("User cancelled")
        return 1

    try:
        result = render_main(
            settings,
            output_path=args.output,
            render_intermediates=not args.no_intermediates,
            intermediate_interval=args.intermediate_interval,
            seed=args.seed,
            strategy=args.strategy,
            show_progress=not args.no_progress,
        )
    except WorkerError as e:
        logger.error(f"Render aborted: {e}")
        return 1
    except (RuntimeError, OSError) as e:
        logger.error(f"Could not write image: {e}")
        return 1

    print("\n=== Render Complete ===")
    print(f"Image: {result['output_path']}")
    print(f"Passes: {result['passes']} in {result['elapsed_s']:.1f} s")
    print(f"Brightest pixel: {result['maximum']}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
