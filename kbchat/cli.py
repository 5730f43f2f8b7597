"""Command-line entry point for the kbchat knowledgebase assistant."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from kbchat.config import config
from kbchat.conversation import ConversationManager
from kbchat.errors import KnowledgebaseError
from kbchat.models import DocumentType
from kbchat.pipeline import KnowledgebasePipeline
from kbchat.query_analyzer import QueryAnalyzer

if TYPE_CHECKING:
    from collections.abc import Sequence

COMMANDS_REQUIRING_API_KEY = {"upload", "ask", "backfill"}


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        prog="kbchat",
        description="Ask questions about your RFPs, case studies and proposals.",
    )
    parser.add_argument(
        "--backend",
        choices=("sqlite", "faiss"),
        default=None,
        help="Vector backend (default: VECTOR_BACKEND or sqlite).",
    )
    parser.add_argument(
        "--db-path",
        type=Path,
        default=None,
        help="SQLite database path (default: VECTOR_STORE_DB_PATH).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a document.")
    upload.add_argument("file", type=Path)
    upload.add_argument("--user", required=True)
    upload.add_argument("--title", required=True)
    upload.add_argument(
        "--type",
        dest="doc_type",
        required=True,
        help=f"One of: {', '.join(doc.value for doc in DocumentType)}.",
    )
    upload.add_argument("--client", required=True)
    upload.add_argument("--industry", required=True)
    upload.add_argument("--geography", default="Global")
    upload.add_argument("--year", default=None)

    ask = subparsers.add_parser("ask", help="Ask a question.")
    ask.add_argument("query")
    ask.add_argument("--user", required=True)
    ask.add_argument("--conversation", type=int, default=None)
    ask.add_argument("--json", action="store_true", help="Print the raw response.")

    analyze = subparsers.add_parser("analyze", help="Show the query analysis.")
    analyze.add_argument("query")
    analyze.add_argument(
        "--heuristic",
        action="store_true",
        help="Skip the language model and use rule-based analysis only.",
    )

    backfill = subparsers.add_parser(
        "backfill", help="Embed documents stored without an embedding."
    )
    backfill.add_argument("--user", required=True)

    documents = subparsers.add_parser("documents", help="List your documents.")
    documents.add_argument("--user", required=True)

    history = subparsers.add_parser("history", help="Show conversations.")
    history.add_argument("--user", required=True)
    history.add_argument("--conversation", type=int, default=None)

    return parser.parse_args(argv)


def build_pipeline(args: argparse.Namespace) -> KnowledgebasePipeline:
    return KnowledgebasePipeline(
        db_path=args.db_path,
        vector_backend=args.backend,
    )


def _run_upload(args: argparse.Namespace) -> None:
    pipeline = build_pipeline(args)
    document = pipeline.upload_document(
        args.user,
        args.file,
        title=args.title,
        doc_type=args.doc_type,
        client=args.client,
        industry=args.industry,
        geography=args.geography,
        year=args.year,
    )
    embedded = "yes" if document.has_embedding else "no"
    print(f"Stored document {document.id}: {document.title} (embedded: {embedded})")


def _run_ask(args: argparse.Namespace) -> None:
    manager = ConversationManager(build_pipeline(args))
    response = manager.answer_query(args.user, args.query, args.conversation)
    if args.json:
        print(json.dumps(response.to_dict(), indent=2))
        return

    print(response.response_text)
    print()
    print(
        f"Search method: {response.search_method} | "
        f"Confidence: {response.confidence:.2f} | "
        f"Conversation: {response.conversation_id}"
    )
    for title in response.sources:
        print(f"  - {title}")


def _run_analyze(args: argparse.Namespace) -> None:
    analyzer = QueryAnalyzer(use_llm=False if args.heuristic else None)
    print(json.dumps(analyzer.analyze(args.query).to_dict(), indent=2))


def _run_backfill(args: argparse.Namespace) -> None:
    report = build_pipeline(args).backfill_embeddings(args.user)
    print(
        f"Processed {report.processed} of {report.total} documents "
        f"({report.errors} errors, {report.skipped} skipped)"
    )


def _run_documents(args: argparse.Namespace) -> None:
    documents = build_pipeline(args).list_documents(args.user)
    if not documents:
        print("No documents.")
    for document in documents:
        embedded = "embedded" if document.has_embedding else "text only"
        print(
            f"{document.id:>4}  {document.title}  [{document.type} | "
            f"{document.client} | {document.industry} | {document.year}] ({embedded})"
        )


def _run_history(args: argparse.Namespace) -> None:
    manager = ConversationManager(build_pipeline(args))
    if args.conversation is None:
        conversations = manager.list_conversations(args.user)
        if not conversations:
            print("No conversations.")
        for conversation in conversations:
            print(f"{conversation.id:>4}  {conversation.updated_at}  {conversation.title}")
        return

    for message in manager.get_history(args.user, args.conversation):
        print(f"[{message.type}] {message.content}")
        if message.sources:
            print(f"    sources: {', '.join(message.sources)}")


HANDLERS = {
    "upload": _run_upload,
    "ask": _run_ask,
    "analyze": _run_analyze,
    "backfill": _run_backfill,
    "documents": _run_documents,
    "history": _run_history,
}


def main(argv: Sequence[str] | None = None) -> int:
    """Parse arguments, run one command and return its exit code."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    if args.command in COMMANDS_REQUIRING_API_KEY:
        try:
            config.validate()
        except ValueError:
            logger.exception("Configuration invalid")
            return 1

    try:
        HANDLERS[args.command](args)
    except KnowledgebaseError as exc:
        logger.error("%s: %s", exc.code, exc.message)  # noqa: TRY400
        return 1
    except (ValueError, OSError):
        logger.exception("Command %s failed", args.command)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
