"""HPMN entry point: interactive chat, or inactive-conversation cleanup."""

import argparse
import asyncio
import logging
import sys
import uuid

from hpmn.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
)
logger = logging.getLogger(__name__)

EXIT_COMMANDS = {"exit", "quit", ":q"}


async def _print_token(text: str) -> None:
    sys.stdout.write(text)
    sys.stdout.flush()


async def chat(conversation_id: str) -> None:
    from hpmn.app import AppContext, build_pipeline

    pipeline = build_pipeline(AppContext.from_settings(settings))
    logger.info("Chatting in conversation %s", conversation_id)

    while True:
        try:
            query = await asyncio.to_thread(input, "\nyou> ")
        except EOFError:
            break
        query = query.strip()
        if not query:
            continue
        if query.lower() in EXIT_COMMANDS:
            break

        sys.stdout.write("hpmn> ")
        reply = await pipeline.handle(query, conversation_id, on_token=_print_token)
        if not reply.ok:
            sys.stdout.write(reply.text)
        sys.stdout.write("\n")


async def purge_inactive(days: int) -> int:
    from hpmn.conversation import ConversationMemory
    from hpmn.llm.gateway import ModelGateway
    from hpmn.store.sqlite import SQLiteStore

    store = SQLiteStore(settings.database_path)
    memory = ConversationMemory(store, ModelGateway(settings), settings)
    return await memory.purge_inactive(days)


def main() -> None:
    parser = argparse.ArgumentParser(description="HPMN personal assistant")
    parser.add_argument(
        "--conversation",
        default=None,
        help="Conversation id to continue. A new one is generated when omitted.",
    )
    parser.add_argument(
        "--purge-inactive",
        action="store_true",
        help="Delete conversations with no activity for --days days, then exit.",
    )
    parser.add_argument("--days", type=int, default=settings.inactive_days)
    args = parser.parse_args()

    if args.purge_inactive:
        deleted = asyncio.run(purge_inactive(args.days))
        print(f"Deleted {deleted} turns from inactive conversations")
        return

    conversation_id = args.conversation or str(uuid.uuid4())
    print(f"Conversation: {conversation_id} (type 'exit' to quit)")
    try:
        asyncio.run(chat(conversation_id))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
