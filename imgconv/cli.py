"""
Command Line Interface for image conversion.
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from .attachment_converter import AttachmentConverter
from .batch_processor import BatchKind, BatchProcessor, load_sanitizer
from .batch_progress import BatchProgress
from .config import ConverterConfig
from .converter import GuardedConverter
from .engine_registry import EngineRegistry, default_registry
from .errors import ImgconvError
from .library import Library
from .library_scanner import LibraryScanner
from .preview import PreviewBuilder
from .reporter import Reporter


def setup_logging(verbose: bool) -> logging.Logger:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s [%(levelname)s] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logging.getLogger('PIL').setLevel(logging.WARNING)
    logging.getLogger('sh').setLevel(logging.WARNING)

    return logging.getLogger('imgconv')


def get_config(args: argparse.Namespace, logger: logging.Logger) -> Optional[ConverterConfig]:
    """Get configuration from file or environment, with CLI overrides; None if invalid."""
    try:
        config_path = getattr(args, 'config', None)
        config = ConverterConfig.load(config_path) if config_path else ConverterConfig.from_env()
    except ImgconvError as e:
        logger.error(str(e))
        return None

    if getattr(args, 'engine', None):
        config.engine = args.engine
    if getattr(args, 'format', None):
        config.format = args.format
    if getattr(args, 'quality', None) is not None:
        config.quality = args.quality
    if getattr(args, 'batch_size', None):
        config.batch_size = args.batch_size
    if getattr(args, 'delete_originals', False):
        config.keep_originals = False
    if getattr(args, 'no_previews', False):
        config.advanced_previews = False
    config.__post_init__()

    errors = config.validate()
    if errors:
        for error in errors:
            logger.error(error)
        return None
    return config


def load_library(args: argparse.Namespace, logger: logging.Logger) -> Optional[Library]:
    try:
        library = Library.load(args.library)
        logger.info(f"Loaded library: {args.library} ({library.total_attachments} attachments)")
        return library
    except FileNotFoundError:
        logger.error(f"Library not found: {args.library}")
    except ImgconvError as e:
        logger.error(f"Failed to load library: {e}")
    return None


def build_processor(
    config: ConverterConfig,
    library: Library,
    registry: EngineRegistry,
    logger: logging.Logger,
    sanitizer=None,
    cadence: float = 0.0
) -> BatchProcessor:
    converter = AttachmentConverter(
        store=library,
        registry=registry,
        converter=GuardedConverter(config, logger=logger),
        config=config,
        logger=logger,
    )
    return BatchProcessor(
        store=library,
        attachment_converter=converter,
        registry=registry,
        sanitizer=sanitizer,
        batch_size=config.batch_size,
        cadence=cadence,
        logger=logger,
    )


def add_conversion_arguments(parser: argparse.ArgumentParser) -> None:
    """Add conversion setting overrides to a parser."""
    group = parser.add_argument_group('Conversion')
    group.add_argument('--config', metavar='PATH', help='JSON config file (default: IMGCONV_* environment)')
    group.add_argument('--engine', help="Engine name or 'auto'")
    group.add_argument('--format', choices=['webp', 'avif'], help='Target format')
    group.add_argument('--quality', type=int, help='Quality 1-100')
    group.add_argument('--delete-originals', action='store_true',
                       help='Delete source files after a successful conversion (cannot be reverted)')


def cmd_status(args: argparse.Namespace) -> int:
    """Execute status command."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    if config is None:
        return 1

    registry = default_registry(logger)
    reporter = Reporter()
    reporter.report_engines(registry, config)
    reporter.report_profiles(config.size_profiles)
    return 0 if registry.validate(config.engine, config.format).valid else 1


def cmd_import(args: argparse.Namespace) -> int:
    """Execute import command."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    if config is None:
        return 1

    try:
        if os.path.exists(args.library):
            library = Library.load(args.library)
        elif args.root:
            library = Library.create_new(args.root, path=args.library)
        else:
            logger.error(f"Library {args.library} does not exist; pass --root to create it")
            return 1

        registry = default_registry(logger)
        preview_builder = PreviewBuilder(registry, config, logger=logger) if config.advanced_previews else None
        scanner = LibraryScanner(library, registry, logger, preview_builder)
        result = scanner.scan(directory=args.directory, limit=args.limit)
        library.save(args.library)

        if not args.quiet:
            print()
            print(f"Added: {result.added}")
            print(f"Already registered: {result.already_registered}")
            print(f"Derivatives skipped: {result.derivatives}")
            print(f"Previews written: {result.previews}")
            print(f"Unreadable headers: {len(result.errors)}")
        return 0

    except Exception as e:
        logger.exception(f"Import failed: {e}")
        return 1


def _selected_ids(args: argparse.Namespace, library: Library) -> List[int]:
    return list(args.id) if args.id else list(library.iter_ids())


def cmd_thumbnails(args: argparse.Namespace) -> int:
    """Execute thumbnails command."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    library = load_library(args, logger)
    if config is None or library is None:
        return 1

    registry = default_registry(logger)
    if registry.geometry_engine() is None:
        logger.error("No engine able to resize images is available")
        return 1

    processor = build_processor(config, library, registry, logger)
    failures = 0
    try:
        for attachment_id in _selected_ids(args, library):
            if library.get_mime_type(attachment_id) not in registry.union_of_input_formats():
                continue
            result = processor.converter.regenerate_sizes(attachment_id, reconvert=not args.no_reconvert)
            if result.errors:
                failures += 1
            if not args.quiet:
                print(f"  #{attachment_id}: {len(result.sizes)} sizes"
                      + (f", {len(result.errors)} errors" if result.errors else ""))
        library.save(args.library)
    except KeyboardInterrupt:
        library.save(args.library)
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Thumbnail generation failed: {e}")
        return 1

    return 0 if failures == 0 else 1


def cmd_convert(args: argparse.Namespace) -> int:
    """Execute convert command (single attachments)."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    library = load_library(args, logger)
    if config is None or library is None:
        return 1

    processor = build_processor(config, library, default_registry(logger), logger)
    failures = 0
    for attachment_id in args.id:
        result = processor.converter.convert_attachment(attachment_id)
        print(f"  [{'OK' if result.ok else 'ERROR'}] {result}")
        failures += 0 if result.ok else 1
    library.save(args.library)
    return 0 if failures == 0 else 1


def cmd_revert(args: argparse.Namespace) -> int:
    """Execute revert command (single attachments)."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    library = load_library(args, logger)
    if config is None or library is None:
        return 1

    processor = build_processor(config, library, default_registry(logger), logger)
    failures = 0
    for attachment_id in args.id:
        result = processor.converter.revert_attachment(attachment_id)
        print(f"  [{'OK' if result.ok else 'ERROR'}] {result}")
        failures += 0 if result.ok else 1
    library.save(args.library)
    return 0 if failures == 0 else 1


def cmd_remove(args: argparse.Namespace) -> int:
    """Execute remove command (drop attachments and their converted files)."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    library = load_library(args, logger)
    if config is None or library is None:
        return 1

    processor = build_processor(config, library, default_registry(logger), logger)
    failures = 0
    for attachment_id in args.id:
        result = processor.converter.remove_attachment(attachment_id)
        print(f"  [{'OK' if result.ok else 'ERROR'}] {result}")
        failures += 0 if result.ok else 1
    library.save(args.library)
    return 0 if failures == 0 else 1


def cmd_batch(args: argparse.Namespace) -> int:
    """Execute batch command."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    library = load_library(args, logger)
    if config is None or library is None:
        return 1

    sanitizer = None
    if args.sanitizer:
        try:
            sanitizer = load_sanitizer(args.sanitizer)
        except (ImportError, ValueError) as e:
            logger.error(f"Cannot load sanitizer: {e}")
            return 1

    registry = default_registry(logger)
    if args.kind == BatchKind.CONVERT.value:
        result = registry.validate(config.engine, config.format)
        if not result.valid:
            logger.warning(result.message)

    processor = build_processor(config, library, registry, logger, sanitizer, args.cadence)

    logger.info(f"Batch: {args.kind}, batch size {config.batch_size}, cadence {args.cadence}s")
    if args.limit:
        logger.info(f"Test mode: limiting to {args.limit} items")

    try:
        progress = None
        if not args.quiet:
            progress = BatchProgress(show_chunks=args.show_chunks, logger=logger)

        stats = processor.run(args.kind, progress=progress, limit=args.limit)
        library.save(args.library)

        if not args.quiet:
            print()
            print(f"Processed: {stats.processed}")
            print(f"Errors: {stats.errors}")
            if stats.bytes_saved:
                print(f"Saved: {Reporter()._format_bytes(stats.bytes_saved)}")
            print(f"Time: {stats.elapsed_seconds:.1f}s")

        if stats.failed:
            return 1
        return 0 if stats.errors == 0 else 1

    except KeyboardInterrupt:
        processor.stop()
        library.save(args.library)
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.exception(f"Batch failed: {e}")
        return 1


def cmd_report(args: argparse.Namespace) -> int:
    """Execute report command."""
    logger = setup_logging(args.verbose)
    config = get_config(args, logger)
    library = load_library(args, logger)
    if config is None or library is None:
        return 1

    processor = build_processor(config, library, default_registry(logger), logger)
    reporter = Reporter()

    if args.type == 'summary':
        reporter.report_summary(library, processor)
    elif args.type == 'detailed':
        reporter.report_detailed(library, processor.converter)
    elif args.type == 'plan':
        reporter.report_action_plan(processor, args.kind, args.cadence)
    elif args.type == 'profiles':
        reporter.report_profiles(config.size_profiles)

    return 0


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog='imgconv',
        description='WebP/AVIF conversion with size-profile thumbnails',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Workflow:
  1. Status:   python -m imgconv status
  2. Import:   python -m imgconv import -l library.json --root /srv/uploads
  3. Sizes:    python -m imgconv thumbnails -l library.json
  4. Convert:  python -m imgconv batch convert -l library.json
  5. Report:   python -m imgconv report -l library.json

Testing:
  Use --limit 3 to process only 3 items
"""
    )

    parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    subparsers = parser.add_subparsers(dest='command', help='Command to run')

    # Status command
    status_parser = subparsers.add_parser('status', help='Show engine availability and format support')
    status_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_conversion_arguments(status_parser)

    # Import command
    import_parser = subparsers.add_parser('import', help='Register a directory of images into a library')
    import_parser.add_argument('-l', '--library', default='library.json', help='Library file')
    import_parser.add_argument('--root', help='Upload root (required when creating a library)')
    import_parser.add_argument('-d', '--directory', help='Directory to scan (default: upload root)')
    import_parser.add_argument('--limit', type=int, metavar='N', help='Limit to N new images (for testing)')
    import_parser.add_argument('--no-previews', action='store_true',
                               help='Register TIFF/PSD/RAW files as they are, without a web preview')
    import_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress summary output')
    import_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    import_parser.add_argument('--config', metavar='PATH', help='JSON config file (default: IMGCONV_* environment)')
    import_parser.add_argument('--format', choices=['webp', 'avif'], help='Conversion target the preview format avoids')

    # Thumbnails command
    thumbs_parser = subparsers.add_parser('thumbnails', help='Regenerate derivative sizes')
    thumbs_parser.add_argument('-l', '--library', required=True, help='Library file')
    thumbs_parser.add_argument('--id', type=int, action='append', help='Attachment id(s) (default: all)')
    thumbs_parser.add_argument('--no-reconvert', action='store_true',
                               help='Do not re-convert attachments that were already converted')
    thumbs_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress per-item output')
    thumbs_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_conversion_arguments(thumbs_parser)

    # Convert command
    convert_parser = subparsers.add_parser('convert', help='Convert single attachments')
    convert_parser.add_argument('-l', '--library', required=True, help='Library file')
    convert_parser.add_argument('--id', type=int, action='append', required=True, help='Attachment id(s)')
    convert_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_conversion_arguments(convert_parser)

    # Revert command
    revert_parser = subparsers.add_parser('revert', help='Revert single attachments')
    revert_parser.add_argument('-l', '--library', required=True, help='Library file')
    revert_parser.add_argument('--id', type=int, action='append', required=True, help='Attachment id(s)')
    revert_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_conversion_arguments(revert_parser)

    # Remove command
    remove_parser = subparsers.add_parser('remove', help='Unregister attachments and delete their converted files')
    remove_parser.add_argument('-l', '--library', required=True, help='Library file')
    remove_parser.add_argument('--id', type=int, action='append', required=True, help='Attachment id(s)')
    remove_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')

    # Batch command
    batch_parser = subparsers.add_parser('batch', help='Process the whole library in chunks')
    batch_parser.add_argument('kind', choices=[k.value for k in BatchKind], help='What to do')
    batch_parser.add_argument('-l', '--library', required=True, help='Library file')
    batch_parser.add_argument('-b', '--batch-size', type=int, help='Items per chunk (default: 15)')
    batch_parser.add_argument('-c', '--cadence', type=float, default=0.0, help='Seconds between chunks')
    batch_parser.add_argument('--sanitizer', metavar='MODULE:CALLABLE', help='SVG sanitizer for sanitize')
    batch_parser.add_argument('--limit', type=int, metavar='N', help='Stop after N items (for testing)')
    batch_parser.add_argument('-q', '--quiet', action='store_true', help='Suppress progress output')
    batch_parser.add_argument('--show-chunks', action='store_true', help='Print each chunk with its errors')
    batch_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_conversion_arguments(batch_parser)

    # Report command
    report_parser = subparsers.add_parser('report', help='Generate reports from a library')
    report_parser.add_argument('-l', '--library', required=True, help='Library file')
    report_parser.add_argument('-t', '--type', choices=['summary', 'detailed', 'plan', 'profiles'],
                               default='summary', help='Report type')
    report_parser.add_argument('-k', '--kind', choices=[k.value for k in BatchKind], default='convert',
                               help='Batch kind for the plan report')
    report_parser.add_argument('-c', '--cadence', type=float, default=0.0, help='Cadence for plan')
    report_parser.add_argument('-v', '--verbose', action='store_true', help='Enable verbose logging')
    add_conversion_arguments(report_parser)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 1

    commands = {
        'status': cmd_status,
        'import': cmd_import,
        'thumbnails': cmd_thumbnails,
        'convert': cmd_convert,
        'revert': cmd_revert,
        'remove': cmd_remove,
        'batch': cmd_batch,
        'report': cmd_report,
    }
    return commands[parsed_args.command](parsed_args)


if __name__ == '__main__':
    sys.exit(main())
