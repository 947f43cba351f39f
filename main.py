"""Command-line entry point for ragchat: ingest documents and chat with them."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from openai import OpenAIError

from ragchat.chat_repository import ChatRepository
from ragchat.config import config
from ragchat.embeddings import EmbeddingService
from ragchat.errors import RagChatError
from ragchat.ingestion import DocumentIngestor
from ragchat.pipeline import ChatPipeline
from ragchat.vector_store import get_vector_store

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="Retrieval-augmented chat over your own documents.",
    )
    commands = parser.add_subparsers(dest="command", required=True)

    ingest = commands.add_parser("ingest", help="Index documents into the store.")
    ingest.add_argument(
        "path",
        type=Path,
        nargs="?",
        default=None,
        help="File or directory to ingest (default: KNOWLEDGE_BASE_DIR).",
    )
    ingest.add_argument(
        "--namespace",
        default=None,
        help="Owner namespace (default: each file's lower-cased name).",
    )

    new_chat = commands.add_parser("new-chat", help="Create a conversation.")
    new_chat.add_argument("--title", default="New chat", help="Conversation title.")

    commands.add_parser("list-chats", help="List conversations, newest first.")

    delete_chat = commands.add_parser("delete-chat", help="Delete a conversation.")
    delete_chat.add_argument("chat_id", help="Conversation id.")

    ask = commands.add_parser("ask", help="Ask a question in a conversation.")
    ask.add_argument("chat_id", help="Conversation id.")
    ask.add_argument("question", help="Question text.")
    ask.add_argument(
        "--user",
        dest="principal",
        default=None,
        help="Principal whose documents may be retrieved.",
    )
    ask.add_argument(
        "--no-stream",
        dest="stream",
        action="store_false",
        help="Wait for the full answer instead of streaming tokens.",
    )
    ask.set_defaults(stream=True)
    return parser.parse_args(argv)


def run_ingest(args: argparse.Namespace, logger: Logger) -> int:
    """Ingest a file or a directory and print a summary."""  # noqa: DOC201
    ingestor = DocumentIngestor(EmbeddingService(), get_vector_store())
    try:
        if args.path is not None and args.path.is_file():
            chunks = ingestor.ingest_file(args.path, args.namespace)
            print("skipped (already processed)" if chunks is None else f"{chunks} chunks")  # noqa: T201
            return 0

        report = ingestor.ingest_directory(args.path, args.namespace)
    except (OpenAIError, OSError, ValueError):
        logger.exception("Failed to ingest %s", args.path or config.KNOWLEDGE_BASE_DIR)
        return 1
    finally:
        ingestor.shutdown()

    print(  # noqa: T201
        f"processed={len(report.processed)} skipped={len(report.skipped)} "
        f"failed={len(report.failed)} chunks={report.chunk_count}"
    )
    for path, error in report.failed.items():
        logger.error("Failed: %s (%s)", path, error)
    return 1 if report.failed else 0


def run_ask(args: argparse.Namespace, repository: ChatRepository) -> int:
    """Answer a question, streaming tokens to stdout by default."""  # noqa: DOC201
    pipeline = ChatPipeline.from_config(repository=repository)
    if not args.stream:
        result = pipeline.answer(args.chat_id, args.question, args.principal)
        print(result.answer)  # noqa: T201
        return 0

    for event in pipeline.stream(args.chat_id, args.question, args.principal):
        if event.kind == "token":
            sys.stdout.write(event.data)
            sys.stdout.flush()
        elif event.kind == "error":
            sys.stdout.write("\n")
            sys.stderr.write(f"{event.data}\n")
            return 1
    sys.stdout.write("\n")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and dispatch the requested command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    repository = ChatRepository()
    try:
        if args.command == "ingest":
            return run_ingest(args, logger)
        if args.command == "new-chat":
            print(repository.create_chat(args.title).id)  # noqa: T201
            return 0
        if args.command == "list-chats":
            for chat in repository.list_chats():
                print(f"{chat.id}\t{chat.created_at}\t{chat.title}")  # noqa: T201
            return 0
        if args.command == "delete-chat":
            if not repository.delete_chat(args.chat_id):
                logger.error("Conversation not found: %s", args.chat_id)
                return 1
            return 0
        return run_ask(args, repository)
    except RagChatError:
        logger.exception("Command %s failed", args.command)
        return 1
    except KeyboardInterrupt:
        logger.info("ragchat stopped by user")
        return 0


if __name__ == "__main__":
    sys.exit(main())
