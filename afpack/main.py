import argparse
import sys

from afpack.__version__ import __version__
from afpack.config import settings
from afpack.domain.models import RunOptions
from afpack.logging import LoggerFactory, setup_logging
from afpack.services import lifecycle, system
from afpack.storage.exceptions import DiskImageError


log = LoggerFactory.for_system()


def build_parser():
    parser = argparse.ArgumentParser(
        prog="afpack",
        description="CLI tool for managing large dependency folders using ASIF",
    )
    parser.add_argument(
        "afdir",
        nargs="?",
        help="Artifact directory (node_modules, target, .build, etc.)",
    )
    parser.add_argument(
        "--compress",
        default=settings.DEFAULT_COMPRESS,
        help="Compression algorithm: " + ", ".join(settings.COMPRESSION_CHOICES),
    )
    parser.add_argument(
        "--maxsize",
        default=settings.DEFAULT_MAXSIZE,
        help=f"Maximum ASIF size (default: {settings.DEFAULT_MAXSIZE})",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without actually doing it",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument("-d", "--debug", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--detach",
        action="store_true",
        help="Unmount the image attached at the artifact directory and exit",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def _fail(message: str) -> int:
    log.debug(message)
    print(message, file=sys.stderr)
    return 1


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(verbose=args.verbose, debug=args.debug)
    run = RunOptions(dry_run=args.dry_run, verbose=args.verbose)

    if not system.is_supported_macos():
        return _fail("ASIF creation requires macOS 26 Tahoe or later")

    afdir = args.afdir
    if not afdir:
        return _fail("Error: Artifact directory must be specified.")

    if args.verbose:
        log.info(
            "Options:\n"
            f"\tArtifact directory: {afdir}\n"
            f"\tCompression: {args.compress}\n"
            f"\tMax size: {args.maxsize}\n"
            f"\tDry run: {args.dry_run}"
        )

    if args.detach:
        try:
            lifecycle.unpack(afdir, run)
        except DiskImageError as error:
            return _fail(f"Error detaching {afdir}: {error}")
        return 0

    image_path = lifecycle.image_path_for(afdir)

    try:
        created = lifecycle.prepare_image(afdir, image_path, args.maxsize, args.compress, run)
    except DiskImageError as error:
        return _fail(f"error create image: {error}")
    except OSError as error:
        return _fail(f"error removing {afdir}: {error}")

    try:
        lifecycle.attach_image(afdir, image_path, run)
    except DiskImageError as error:
        if created and not run.dry_run:
            log.warning(
                f"{afdir} was moved to the Trash; its contents are in {image_path}"
            )
        return _fail(f"Error attaching ASIF: {error}")

    lifecycle.compress_image(image_path, run)
    return 0


if __name__ == "__main__":
    sys.exit(main())
