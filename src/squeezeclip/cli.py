"""
Command-line interface for squeezeclip.

This is the main entry point for the application.
"""

import argparse
import datetime
import re
import sys
import time
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from squeezeclip import __author__, __license__, __url__, __version__
from squeezeclip.bitrate import SizeUnit
from squeezeclip.config import (
    TOML_AVAILABLE,
    Config,
    apply_config_to_args,
    get_app_dirs,
    load_config_file,
    save_default_config,
)
from squeezeclip.errors import ValidationError
from squeezeclip.i18n import _, setup_i18n
from squeezeclip.json_progress import JSONProgressOutput
from squeezeclip.pipeline import JobPipeline, JobState
from squeezeclip.runner import ProcessRunner, terminate_all_processes
from squeezeclip.tools import find_tool, resolve_tools, tool_version
from squeezeclip.ui import RICH_AVAILABLE
from squeezeclip.ui.legacy_ui import LegacyStatusUI

if RICH_AVAILABLE:
    from squeezeclip.ui.rich_ui import RichStatusUI

# Global app directories (initialized in main)
APP_DIRS: Dict[str, Path] = {}

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_FAILED = 2
EXIT_INTERRUPTED = 130


def parse_args(args: Optional[List[str]] = None) -> Tuple[Config, List[Path]]:
    """Parse command-line arguments and return config + input files."""
    defaults = Config()
    parser = argparse.ArgumentParser(
        prog="squeezeclip",
        description=_("Compress video clips to a target file size with two-pass H.264 encoding."),
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s clip.mp4 -o out -s 8 -u MB     # Fit clip.mp4 into 8 MB
  %(prog)s *.mkv -o out -s 25 --max-fps 30  # Whole folder, capped at 30 fps
  %(prog)s a.mp4 -o out --json-progress   # Machine-readable progress on stdout
  %(prog)s --show-dirs                    # Show config/cache/log directories
  %(prog)s --check-requirements           # Check ffmpeg/ffprobe
        """,
    )

    parser.add_argument(
        "-V",
        "--version",
        action="version",
        version=f"%(prog)s {__version__}\nAuthor: {__author__}\nLicense: {__license__}\nURL: {__url__}",
    )

    parser.add_argument("inputs", nargs="*", help=_("Video files to compress"))

    # Target settings
    target_group = parser.add_argument_group(_("Target settings"))
    target_group.add_argument("-o", "--output-dir", default=defaults.output_dir, metavar="DIR")
    target_group.add_argument("-s", "--size", type=float, default=defaults.target_size, help=_("Target size"))
    target_group.add_argument(
        "-u",
        "--unit",
        choices=SizeUnit.tokens(),
        default=defaults.size_unit,
        help=_("Unit of the target size (default: MB)"),
    )
    target_group.add_argument("--max-fps", type=float, default=defaults.max_fps, metavar="FPS")

    # External tools
    tools_group = parser.add_argument_group(_("External tools"))
    tools_group.add_argument("--ffmpeg", default=defaults.ffmpeg_path, metavar="PATH")
    tools_group.add_argument("--ffprobe", default=defaults.ffprobe_path, metavar="PATH")
    tools_group.add_argument("--deps-dir", default=defaults.deps_dir, metavar="DIR")

    # UI settings
    ui_group = parser.add_argument_group(_("UI settings"))
    ui_group.add_argument("--no-progress", action="store_false", dest="progress")
    ui_group.add_argument(
        "--json-progress",
        action="store_true",
        help=_("Write progress as JSON lines on stdout"),
    )
    ui_group.add_argument("-d", "--debug", action="store_true", help=_("Enable debug output"))
    ui_group.add_argument("--lang", default=None, help=_("Force language (en, fr, es, de)"))

    # Utility commands
    util_group = parser.add_argument_group(_("Utility commands"))
    util_group.add_argument("--show-dirs", action="store_true")
    util_group.add_argument("--check-requirements", action="store_true")

    parsed_args = parser.parse_args(args)

    if parsed_args.lang:
        setup_i18n(parsed_args.lang)

    cfg = Config(
        output_dir=parsed_args.output_dir,
        target_size=parsed_args.size,
        size_unit=parsed_args.unit,
        max_fps=parsed_args.max_fps,
        ffmpeg_path=parsed_args.ffmpeg,
        ffprobe_path=parsed_args.ffprobe,
        deps_dir=parsed_args.deps_dir,
        progress=parsed_args.progress,
        json_progress=parsed_args.json_progress,
        debug=parsed_args.debug,
        lang=parsed_args.lang,
    )
    return cfg, dedupe_inputs(parsed_args.inputs)


def dedupe_inputs(inputs: List[str]) -> List[Path]:
    """Expand input paths and drop repeated ones, keeping the first occurrence."""
    seen = set()
    result: List[Path] = []
    for raw in inputs:
        p = Path(raw).expanduser()
        key = p.absolute()
        if key in seen:
            continue
        seen.add(key)
        result.append(p)
    return result


def get_log_path(inp: Path) -> Path:
    """Generate log path for input file."""
    logs_dir = APP_DIRS.get("logs", Path.home() / ".local" / "state" / "squeezeclip" / "logs")
    logs_dir.mkdir(parents=True, exist_ok=True)

    date_str = datetime.date.today().isoformat()
    safe_name = re.sub(r"[^\w\-.]", "_", inp.stem)[:80]
    return logs_dir / f"{date_str}_{safe_name}.log"


# -------------------- UTILITY COMMANDS --------------------


def check_requirements(cfg: Config) -> int:
    """Check system requirements."""
    print(f"squeezeclip v{__version__} - {_('Requirements Check')}")
    print("=" * 50)
    print()

    all_ok = True

    print(f"{_('System requirements')} ({_('mandatory')}):")
    print("-" * 40)

    for name, configured in (("ffmpeg", cfg.ffmpeg_path), ("ffprobe", cfg.ffprobe_path)):
        path = find_tool(configured, cfg.deps_dir)
        if path:
            version_line = tool_version(path) or "unknown"
            print(f"  ✓ {name}: {path} ({version_line})")
        else:
            print(f"  ✗ {name}: NOT FOUND ({configured})")
            all_ok = False

    py_version = sys.version_info
    if py_version >= (3, 8):
        print(f"  ✓ Python: {py_version.major}.{py_version.minor}.{py_version.micro}")
    else:
        print(f"  ✗ Python: {py_version.major}.{py_version.minor} (need 3.8+)")
        all_ok = False

    print()
    print(f"{_('Optional dependencies')}:")
    print("-" * 40)

    print(f"  {'✓' if RICH_AVAILABLE else '○'} rich: {'installed' if RICH_AVAILABLE else 'NOT INSTALLED'}")
    print(f"  {'✓' if TOML_AVAILABLE else '○'} TOML support: {'available' if TOML_AVAILABLE else 'not available'}")

    print()
    if all_ok:
        print(f"✓ {_('All requirements satisfied')}")
        return EXIT_OK
    print(f"✗ {_('Some requirements missing')}")
    return EXIT_INVALID


def show_dirs() -> int:
    """Print the XDG directories in use."""
    print(f"squeezeclip {_('directories')}:")
    print()
    print(f"{_('User directories')} (XDG):")
    print(f"  Config:  {APP_DIRS['config']}")
    print(f"  State:   {APP_DIRS['state']}")
    print(f"  Logs:    {APP_DIRS['logs']}")
    print(f"  Cache:   {APP_DIRS['cache']}")
    print(f"  Passlog: {APP_DIRS['passlog']}")
    return EXIT_OK


# -------------------- MAIN --------------------


def make_ui(cfg: Config):
    """Pick the status display for this run (None in JSON mode)."""
    if cfg.json_progress:
        return None
    if RICH_AVAILABLE and cfg.progress:
        return RichStatusUI(progress_enabled=cfg.progress)
    return LegacyStatusUI(progress=cfg.progress)


def run_batch(pipeline: JobPipeline, inputs: List[Path]) -> JobState:
    """
    Run one batch to completion, failure or abort.

    The first Ctrl-C aborts the batch and waits for the running ffmpeg or
    ffprobe to exit; a second Ctrl-C terminates it.
    """
    pipeline.submit(inputs)

    try:
        state = pipeline.run()
    except KeyboardInterrupt:
        pipeline.request_abort()
        state = pipeline.ctx.state

    if state == JobState.ABORTED:
        try:
            while pipeline.runner.busy:
                pipeline.process_pending(timeout=0.1)
        except KeyboardInterrupt:
            terminate_all_processes()
            pipeline.runner.wait(timeout=2.0)
    return pipeline.ctx.state


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    global APP_DIRS

    setup_i18n()

    cfg, inputs = parse_args(argv)

    from squeezeclip.config import CFG as global_cfg

    APP_DIRS = get_app_dirs()
    save_default_config(APP_DIRS["config"])

    file_config = load_config_file(APP_DIRS["config"])
    if file_config:
        apply_config_to_args(file_config, cfg)
    if cfg.lang:
        setup_i18n(cfg.lang)
    cfg.apply_script_mode()

    global_cfg.__dict__.update(cfg.__dict__)

    # Utility commands exit immediately
    _parser = argparse.ArgumentParser(add_help=False)
    _parser.add_argument("--show-dirs", action="store_true")
    _parser.add_argument("--check-requirements", action="store_true")
    _util_args, _remaining = _parser.parse_known_args(argv)

    if _util_args.check_requirements:
        return check_requirements(cfg)
    if _util_args.show_dirs:
        return show_dirs()

    ui = make_ui(cfg)
    pipeline = JobPipeline(
        cfg=cfg,
        runner=ProcessRunner(),
        get_log_path=get_log_path,
        tool_resolver=resolve_tools,
        log=ui.log if ui is not None else None,
    )
    if ui is not None:
        ui.attach(pipeline)
    else:
        JSONProgressOutput().attach(pipeline)

    start_time = time.time()
    try:
        state = run_batch(pipeline, inputs)
    except ValidationError as e:
        if ui is not None:
            ui.log(str(e))
        else:
            print(str(e), file=sys.stderr)
        return EXIT_INVALID

    if ui is not None:
        ui.print_summary(pipeline, time.time() - start_time)
        job = pipeline.current_job
        if state == JobState.FAILED and job is not None and job.log_path:
            ui.log(f"{_('Log')}: {job.log_path}")

    if state == JobState.ABORTED:
        return EXIT_INTERRUPTED
    if state == JobState.FAILED:
        return EXIT_FAILED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
