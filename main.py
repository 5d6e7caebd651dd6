"""
Watermark Tool CLI Entrypoint.

Responsibility:
    Parse command-line arguments, configure the application, build the
    watermark engine, and run it over a single file or a directory.

Usage:
    python main.py photo.png other.jpg               # Simple mode: in-place removal
    python main.py -i photo.png -o clean.png         # Remove (detection-guarded)
    python main.py -i images/ -o cleaned/ --workers 4
    python main.py -i photo.png -o marked.png --add
    python main.py -i images/ --detect-only --report report.json
    python main.py --config my_config.yaml -i in.png -o out.png

This module is the executable entry point. It should not be imported
by other modules.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

# Configure logging before importing local modules
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("main")

from watermark_tool import __version__
from watermark_tool.alpha_mask import CalibrationError
from watermark_tool.batch import BatchSummary, run_batch
from watermark_tool.config import AppConfig, load_config
from watermark_tool.engine import WatermarkEngine
from watermark_tool.pipeline import ProcessResult, detect_image, process_image
from watermark_tool.serializer import save_report

# Detection settings used by simple mode
_SIMPLE_MODE_THRESHOLD = 0.25


def is_simple_mode(argv: List[str]) -> bool:
    """Simple mode: one or more arguments, none of them an option."""
    return bool(argv) and all(arg and not arg.startswith("-") for arg in argv)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Watermark Tool: remove or add the alpha-blended corner watermark",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
        epilog="Simple usage: main.py <image> [<image> ...]  "
               "(in-place removal with auto-detection)",
    )

    parser.add_argument(
        "-V", "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )
    parser.add_argument(
        "-i", "--input",
        type=str,
        required=True,
        help="Input image file or directory.",
    )
    parser.add_argument(
        "-o", "--output",
        type=str,
        help="Output image file or directory. Required unless --detect-only.",
    )

    mode = parser.add_mutually_exclusive_group()
    mode.add_argument(
        "-r", "--remove",
        dest="mode",
        action="store_const",
        const="remove",
        help="Remove the watermark (default). Overrides config.",
    )
    mode.add_argument(
        "-a", "--add",
        dest="mode",
        action="store_const",
        const="add",
        help="Add the watermark instead of removing it. Overrides config.",
    )
    mode.add_argument(
        "--detect-only",
        action="store_true",
        help="Only report detection confidence; write nothing.",
    )

    parser.add_argument(
        "-f", "--force",
        action="store_true",
        help="Process without watermark detection (may damage images without watermarks).",
    )
    parser.add_argument(
        "-t", "--threshold",
        type=float,
        help="Detection confidence threshold (0.0 - 1.0). Overrides config.",
    )

    size = parser.add_mutually_exclusive_group()
    size.add_argument(
        "--force-small",
        dest="force_size",
        action="store_const",
        const="small",
        help="Force the 48x48 watermark regardless of image size.",
    )
    size.add_argument(
        "--force-large",
        dest="force_size",
        action="store_const",
        const="large",
        help="Force the 96x96 watermark regardless of image size.",
    )

    parser.add_argument(
        "--workers",
        type=int,
        help="Images processed concurrently in directory mode. Overrides config.",
    )
    parser.add_argument(
        "--report",
        type=str,
        help="Write per-image results to a .json or .csv report.",
    )
    parser.add_argument(
        "--config",
        type=str,
        help="Path to YAML configuration file.",
    )

    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug output.",
    )
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress all output except errors.",
    )

    args = parser.parse_args(argv)
    if args.output is None and not args.detect_only:
        parser.error("the following arguments are required: -o/--output")
    return args


def report_result(result: ProcessResult) -> None:
    """Log one per-image outcome line."""
    name = Path(result.input_path).name

    if result.skipped:
        logger.info("[SKIP] %s: %s", name, result.message)
    elif result.success:
        if result.confidence > 0:
            logger.info("[OK] %s: %s (%.0f%% confidence)",
                        name, result.message, result.confidence * 100.0)
        else:
            logger.info("[OK] %s: %s", name, result.message)
    else:
        logger.error("[FAIL] %s: %s", name, result.message)


def report_summary(summary: BatchSummary) -> None:
    """Log the batch tally when more than one image was handled."""
    if summary.total > 1:
        logger.info(
            "[Summary] Processed: %d, Skipped: %d, Failed: %d (Total: %d)",
            summary.success, summary.skipped, summary.failed, summary.total,
        )


def run_simple_mode(paths: List[str]) -> int:
    """Remove the watermark in place from each file, guarded by detection."""
    logging.getLogger().setLevel(logging.WARNING)
    logging.getLogger("main").setLevel(logging.INFO)

    logger.info("Auto-detection enabled (threshold: %.0f%%)", _SIMPLE_MODE_THRESHOLD * 100.0)

    try:
        config = load_config(None)
        engine = WatermarkEngine.from_config(config.engine)
    except (FileNotFoundError, ValueError, CalibrationError) as e:
        logger.error("Initialization failed: %s", e)
        return 1

    summary = BatchSummary()

    for arg in paths:
        path = Path(arg)

        if not path.exists():
            logger.error("[ERROR] File not found: %s", path)
            summary.failed += 1
            continue

        if path.is_dir():
            logger.error(
                "[ERROR] Directory not supported in simple mode: %s "
                "(use: main.py -i <dir> -o <dir>)", path,
            )
            summary.failed += 1
            continue

        result = process_image(
            path, path, True, engine,
            config.processing.force_size, True, _SIMPLE_MODE_THRESHOLD, config.output,
        )
        summary.record(result)
        report_result(result)

    report_summary(summary)
    return summary.exit_code


def apply_cli_overrides(config: AppConfig, args: argparse.Namespace) -> AppConfig:
    """Layer CLI arguments over the loaded configuration."""
    config = config.with_overrides(
        "processing",
        mode=args.mode,
        force_size=args.force_size,
        workers=args.workers,
    )
    config = config.with_overrides(
        "detection",
        enabled=False if args.force else None,
        threshold=args.threshold,
    )
    return config


def main(argv: Optional[List[str]] = None) -> int:
    """Main execution entry point."""
    if argv is None:
        argv = sys.argv[1:]

    if is_simple_mode(argv):
        return run_simple_mode(argv)

    args = parse_args(argv)

    if args.quiet:
        logging.getLogger().setLevel(logging.ERROR)
    elif args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    # 1. Load Configuration (CLI args > ENV > YAML > Defaults)
    try:
        config = apply_cli_overrides(load_config(args.config), args)
        logger.info("Configuration active for this run.")
    except Exception as e:
        logger.error("Configuration error: %s", e)
        return 1

    remove = config.processing.mode == "remove"
    use_detection = config.detection.enabled

    if args.detect_only:
        logger.info("Detect-only mode: no files will be written.")
    elif not remove:
        logger.info("Add mode: watermark will be blended into every image.")
    elif use_detection:
        logger.info("Auto-detection enabled (threshold: %.0f%%)",
                    config.detection.threshold * 100.0)
    else:
        logger.warning("Force mode - processing ALL images without detection!")

    # 2. Initialize Engine
    try:
        engine = WatermarkEngine.from_config(config.engine)
    except (FileNotFoundError, ValueError, CalibrationError) as e:
        logger.error("Initialization failed: %s", e)
        return 1
    except Exception as e:
        logger.exception("Unexpected initialization error: %s", e)
        return 1

    # 3. Process
    input_path = Path(args.input)
    if not input_path.exists():
        logger.error("[ERROR] Input path not found: %s", input_path)
        return 1

    try:
        if input_path.is_dir():
            summary, results = run_batch(
                engine,
                input_path,
                args.output,
                remove=remove,
                size=config.processing.force_size,
                use_detection=use_detection,
                detection_threshold=config.detection.threshold,
                output=config.output,
                max_workers=config.processing.workers,
                on_result=report_result,
                detect_only=args.detect_only,
            )
        else:
            if args.detect_only:
                result = detect_image(input_path, engine, config.processing.force_size)
            else:
                result = process_image(
                    input_path, args.output, remove, engine,
                    config.processing.force_size, use_detection,
                    config.detection.threshold, config.output,
                )
            report_result(result)
            results = [result]
            summary = BatchSummary()
            summary.record(result)

        report_summary(summary)

        # 4. Report
        if args.report:
            save_report(results, args.report, summary)

    except KeyboardInterrupt:
        logger.info("Interrupted by user.")
        return 1
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1

    return summary.exit_code


if __name__ == "__main__":
    sys.exit(main())
