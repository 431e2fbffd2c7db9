"""Command line entry point for markdown-diff-preview.

This module provides three commands:
- render: Render a Markdown file (optionally with a diff) to HTML
- add-comment: Start a review comment on a line
- update-comment: Edit the plan or response of a review comment in place
"""

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from markdown_diff_preview._version import __version__
from markdown_diff_preview.utils.logging import (
    LogEventNames,
    bind_context,
    clear_context,
    get_logger,
)

if TYPE_CHECKING:
    from markdown_diff_preview.config.schema import PreviewConfig

log = get_logger(__name__)


def setup_logging(debug: bool = False, log_format: str = "console") -> None:
    """Configure structured logging from command line options.

    Args:
        debug: Enable debug logging if True
        log_format: Output format ("json" or "console")
    """
    from markdown_diff_preview.utils.logging import LogFormat, LogLevel, configure_logging

    level = LogLevel.DEBUG if debug else LogLevel.WARNING
    configure_logging(level=level, log_format=LogFormat(log_format.lower()))


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments.

    Args:
        argv: Arguments to parse, defaults to sys.argv

    Returns:
        Parsed argument namespace
    """
    parser = argparse.ArgumentParser(
        prog="markdown-diff-preview",
        description="Render Markdown with diff highlighting and review comments",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Path to configuration file (default: built-in defaults)",
    )

    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )

    parser.add_argument(
        "--format",
        choices=["json", "console"],
        default="console",
        help="Log output format (default: console)",
    )

    commands = parser.add_subparsers(dest="command", required=True)

    render = commands.add_parser("render", help="Render a Markdown file to HTML")
    render.add_argument("file", type=Path, nargs="?", help="Markdown file to render")
    source = render.add_mutually_exclusive_group()
    source.add_argument("--diff", type=Path, help="Unified diff of FILE against its base revision")
    source.add_argument(
        "--from-diff",
        type=Path,
        help="Rebuild the document from a full-context diff instead of reading FILE",
    )
    source.add_argument(
        "--new-file",
        action="store_true",
        help="Treat FILE as untracked: every line is an addition",
    )
    render.add_argument(
        "--no-line-numbers", action="store_true", help="Hide line numbers on added lines"
    )
    render.add_argument("-o", "--output", type=Path, help="Write HTML here instead of stdout")
    render.add_argument("--page", action="store_true", help="Emit a complete HTML page")
    render.add_argument("--branch", help="Branch name shown in the page header")
    render.add_argument("--status", help="git status --porcelain code shown in the page header")
    render.add_argument("--base-ref", default="HEAD", help="Base revision shown in the page header")
    render.add_argument("--stylesheet", help="Stylesheet linked from the page")

    add = commands.add_parser("add-comment", help="Start a review comment on a line")
    add.add_argument("file", type=Path, help="Markdown file to comment on")
    add.add_argument("line", type=int, help="Line number the comment is about")
    add.add_argument("message", help="First message of the thread")
    add.add_argument(
        "--text", help="Text on the line being commented on (default: the whole element)"
    )
    add.add_argument("--author", choices=["user", "ai"], default="user", help="Message author")

    update = commands.add_parser("update-comment", help="Edit a comment's plan or response")
    update.add_argument("file", type=Path, help="Markdown file holding the ledger")
    update.add_argument("comment_id", type=int, help="Comment id")
    update.add_argument("field", choices=["plan", "response"], help="Field to set")
    update.add_argument("text", help="New content")

    args = parser.parse_args(argv)
    if args.command == "render" and args.file is None and args.from_diff is None:
        parser.error("render needs FILE or --from-diff")
    return args


def _apply_logging_config(config: "PreviewConfig") -> None:
    """Reconfigure logging from config file settings."""
    from markdown_diff_preview.utils.logging import configure_logging

    configure_logging(
        level=config.logging.level,
        log_format=config.logging.format,
        file_path=config.logging.file.path if config.logging.file.enabled else None,
        file_enabled=config.logging.file.enabled,
    )


def _select_file_diff(diff_text: str, file_path: Path | None) -> tuple[str, str]:
    """Pick the per-file diff matching file_path out of a multi-file diff.

    Returns:
        Tuple of (file path, diff text for that file)
    """
    from markdown_diff_preview.core.diff_parser import split_file_diffs

    files = split_file_diffs(diff_text)
    if not files:
        return (str(file_path) if file_path else "document.md"), diff_text

    if file_path is not None:
        for path, text in files.items():
            if Path(path).name == file_path.name:
                return path, text

    return next(iter(files.items()))


def run_render(args: argparse.Namespace, config_path: Path | None) -> int:
    """Render a document.

    Args:
        args: Parsed ``render`` arguments
        config_path: Path to configuration file, or None for defaults

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from markdown_diff_preview.config.loader import load_config
    from markdown_diff_preview.core.diff_parser import (
        extract_new_file_content,
        new_file_diff,
        parse_diff,
    )
    from markdown_diff_preview.core.page import render_page
    from markdown_diff_preview.core.renderer import MarkdownDiffRenderer
    from markdown_diff_preview.interfaces.vcs import status_from_porcelain

    try:
        config = load_config(config_path)
        if config_path is not None:
            _apply_logging_config(config)
        log.debug(LogEventNames.CONFIG_LOADED, path=str(config_path) if config_path else None)

        file_diff = None
        if args.from_diff is not None:
            full_diff = args.from_diff.read_text(encoding="utf-8")
            file_name, diff_text = _select_file_diff(full_diff, args.file)
            markdown = extract_new_file_content(diff_text)
            file_diff = parse_diff(file_name, diff_text)
        else:
            file_name = str(args.file)
            markdown = args.file.read_text(encoding="utf-8")
            if args.diff is not None:
                _, diff_text = _select_file_diff(args.diff.read_text(encoding="utf-8"), args.file)
                file_diff = parse_diff(file_name, diff_text)
            elif args.new_file:
                file_diff = new_file_diff(file_name, len(markdown.split("\n")))
        bind_context(document=file_name)

        renderer = MarkdownDiffRenderer(config.render)
        show_line_numbers = False if args.no_line_numbers else None
        html = renderer.render(markdown, file_diff, show_line_numbers)

        if args.page:
            html = render_page(
                html,
                Path(file_name).name,
                file_diff,
                branch=args.branch,
                status=status_from_porcelain(args.status) if args.status is not None else None,
                base_ref=args.base_ref,
                stylesheet=args.stylesheet,
            )

        if args.output is not None:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(html, encoding="utf-8")
            log.info(LogEventNames.OUTPUT_WRITTEN, path=str(args.output), size=len(html))
        else:
            sys.stdout.write(html)
            if not html.endswith("\n"):
                sys.stdout.write("\n")

        return 0

    except FileNotFoundError as e:
        log.error("file_not_found", error=str(e))
        return 1
    except ValueError as e:
        log.error("invalid_input", error=str(e))
        return 1


def run_add_comment(args: argparse.Namespace, config_path: Path | None) -> int:
    """Add a comment to the ledger and mark its line.

    The marker is appended to the commented line and the new id is printed.

    Args:
        args: Parsed ``add-comment`` arguments
        config_path: Path to configuration file, or None for defaults

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from markdown_diff_preview.config.loader import load_config
    from markdown_diff_preview.core.comment_ledger import (
        CommentLedgerError,
        add_comments,
        find_ledger_block,
        parse_ledger,
        write_ledger,
    )
    from markdown_diff_preview.models.comments import (
        CommentDraft,
        CommentDraftItem,
        CommentTarget,
    )

    try:
        bind_context(document=str(args.file))
        config = load_config(config_path)
        if config_path is not None:
            _apply_logging_config(config)
        markdown = args.file.read_text(encoding="utf-8")

        lines = markdown.split("\n")
        if not 1 <= args.line <= len(lines):
            raise ValueError(f"Line {args.line} is outside the document")
        block = find_ledger_block(markdown)
        if block is not None and markdown.count("\n", 0, block.start()) < args.line:
            if args.line <= markdown.count("\n", 0, block.end()) + 1:
                raise ValueError(f"Line {args.line} is inside the COMMENTS-DATA block")
        line = lines[args.line - 1]
        if args.text:
            if args.text not in line:
                raise ValueError(f"Text {args.text!r} not found on line {args.line}")
            target = CommentTarget(
                type="inline", line=args.line, text=args.text, position=len(line)
            )
        else:
            target = CommentTarget(type="block", line=args.line)
        draft = CommentDraft(
            target=target,
            thread=[CommentDraftItem(author=args.author, content=args.message)],
        )

        updated, new_ids = add_comments(
            markdown,
            [draft],
            indent=config.ledger.indent,
            reserve_marker_ids=config.ledger.reserve_marker_ids,
        )
        comment_id = new_ids[0]
        bind_context(comment_id=comment_id)

        # Mark the original text so a ledger above the line cannot shift it
        comments = parse_ledger(updated)
        if comments is None:
            raise CommentLedgerError("Rewritten COMMENTS-DATA block could not be read")
        lines[args.line - 1] = f"{line}<!--comment:{comment_id}-->"
        marked = write_ledger("\n".join(lines), comments, indent=config.ledger.indent)
        args.file.write_text(marked, encoding="utf-8")

        log.info(LogEventNames.OUTPUT_WRITTEN, path=str(args.file), line=args.line)
        sys.stdout.write(f"{comment_id}\n")
        return 0

    except FileNotFoundError as e:
        log.error("file_not_found", error=str(e))
        return 1
    except CommentLedgerError as e:
        log.error("comment_add_failed", error=str(e))
        return 1
    except ValueError as e:
        log.error("invalid_input", error=str(e))
        return 1


def run_update_comment(args: argparse.Namespace, config_path: Path | None) -> int:
    """Set a comment's plan or response and rewrite the ledger in place.

    Args:
        args: Parsed ``update-comment`` arguments
        config_path: Path to configuration file, or None for defaults

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    from markdown_diff_preview.config.loader import load_config
    from markdown_diff_preview.core.comment_ledger import CommentLedgerError, update_comment

    try:
        bind_context(document=str(args.file), comment_id=args.comment_id)
        config = load_config(config_path)
        if config_path is not None:
            _apply_logging_config(config)
        markdown = args.file.read_text(encoding="utf-8")
        updated = update_comment(
            markdown,
            args.comment_id,
            args.field,
            args.text,
            indent=config.ledger.indent,
        )
        args.file.write_text(updated, encoding="utf-8")
        log.info(LogEventNames.OUTPUT_WRITTEN, path=str(args.file), comment_id=args.comment_id)
        return 0

    except FileNotFoundError as e:
        log.error("file_not_found", error=str(e))
        return 1
    except CommentLedgerError as e:
        log.error("comment_update_failed", comment_id=args.comment_id, error=str(e))
        return 1
    except ValueError as e:
        log.error("invalid_input", error=str(e))
        return 1


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    setup_logging(debug=args.debug, log_format=args.format)
    bind_context(command=args.command)

    try:
        if args.command == "render":
            return run_render(args, args.config)
        if args.command == "add-comment":
            return run_add_comment(args, args.config)
        return run_update_comment(args, args.config)
    finally:
        clear_context()


if __name__ == "__main__":
    sys.exit(main())
