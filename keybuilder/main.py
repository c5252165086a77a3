"""Command line entry point: parse arguments, set up logging and run the wizard."""

import argparse
import signal
import sys
from pathlib import Path

from keybuilder import APP_NAME, __version__
from keybuilder.app.context import WizardContext
from keybuilder.app.privilege import require_root
from keybuilder.config import settings
from keybuilder.logging import LoggerFactory, setup_logging
from keybuilder.storage.exceptions import KeybuilderError, UserExit, WizardAbort
from keybuilder.ui.dialog import DialogRenderer
from keybuilder.wizard.controller import run_wizard


def build_parser():
    parser = argparse.ArgumentParser(
        prog="keybuilder",
        description="Prepare a bootable multi-partition USB key with GRUB",
    )
    parser.add_argument("-d", "--debug", action="store_true", help="Enable verbose debug output")
    parser.add_argument(
        "--trace", action="store_true", help="Also log raw output of external tools"
    )
    parser.add_argument("--log-dir", type=Path, help="Directory for log files")
    parser.add_argument("--version", action="version", version=f"{APP_NAME} {__version__}")
    return parser


def _raise_abort(signum, frame):
    raise WizardAbort(f"Terminated by signal {signum}")


def build_context():
    """Wizard context from the loaded settings.

    Raises:
        ConfigError: If the settings are invalid or the shared directory is missing
    """
    return WizardContext(
        config=settings.plan_config(),
        backtitle=f"{APP_NAME} {__version__}",
        label_use_property=str(settings.get_setting("label_use_property")),
        default_label=str(settings.get_setting("label_storage")),
        boot_isos_dir=str(settings.get_setting("boot_isos_dir")),
        shared_dir=settings.resolve_shared_dir(),
    )


def main(argv=None):
    argv = sys.argv[1:] if argv is None else list(argv)
    args = build_parser().parse_args(argv)
    debug_enabled = args.debug or settings.get_bool("debug")
    setup_logging(debug=debug_enabled, trace=args.trace, log_dir=args.log_dir)
    log = LoggerFactory.for_system()
    log.info(f"Starting {APP_NAME} {__version__}")

    context = None
    try:
        require_root(argv)
        context = build_context()
        signal.signal(signal.SIGTERM, _raise_abort)
        run_wizard(context, DialogRenderer(context.backtitle))
    except UserExit as exit_request:
        log.info(f"Exited by user at step {exit_request.step}.")
        return 0
    except KeybuilderError as error:
        log.error(str(error))
        return 1
    except KeyboardInterrupt:
        log.warning("Interrupted.")
        return 1
    finally:
        if context is not None:
            context.resources.cleanup()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
