"""Command-line interface: interactive chat and knowledge ingestion."""

import argparse
import logging
import uuid
from dataclasses import dataclass

from groq import AsyncGroq

from .agent import (
    AgentConfig,
    ChatAgent,
    ChatMemoryAgentListener,
    VectorStoreChatMemoryAgentListener,
)
from .chat import ChatClient
from .config import Settings
from .context import (
    ChatMemoryRetriever,
    ContentType,
    LastMaxTokenSizeContentTransformer,
    PromptContext,
    QuestionContextAugmentor,
    SystemPromptChatMemoryAugmentor,
    VectorStoreChatMemoryRetriever,
    VectorStoreRetriever,
)
from .conversation_logger import get_conversation_logger
from .errors import RagentError
from .ingest import JsonReader, TokenTextSplitter, ingest
from .memory import HttpEmbedder, SQLiteChatMemory, TiktokenEstimator, VectorStore
from .prompt import ChatOptions, Prompt

logger = logging.getLogger(__name__)

LONG_TERM_TEMPLATE = """Use the long term conversation history from the LONG TERM HISTORY section to provide accurate answers.

LONG TERM HISTORY:
{history}"""

BANNER = """
ragent - retrieval-augmented chat

Commands:
  /exit, /quit  - Exit
  /reset        - Start a new conversation
  /help         - Show this help

Type your message and press Enter.
"""


@dataclass
class Runtime:
    """Wired components owned by one CLI run."""

    agent: ChatAgent
    memory: SQLiteChatMemory
    store: VectorStore
    embedder: HttpEmbedder


def _open_vector_store(settings: Settings) -> VectorStore:
    from .memory.lance import LanceVectorStore

    return LanceVectorStore(settings.vector_db)


def _embedder(settings: Settings) -> HttpEmbedder:
    return HttpEmbedder(
        settings.embedding_url,
        model=settings.embedding_model,
        api_key=settings.embedding_api_key,
    )


def build_runtime(settings: Settings, groq_client: AsyncGroq | None = None) -> Runtime:
    """Wire a memory-backed ChatAgent from settings."""
    conv_logger = get_conversation_logger(settings.log_dir)
    client = ChatClient(
        groq_client or AsyncGroq(api_key=settings.groq_api_key),
        options=ChatOptions(model=settings.model, temperature=settings.temperature),
        max_function_rounds=settings.max_function_rounds,
        conversation_logger=conv_logger,
    )

    memory = SQLiteChatMemory(settings.memory_db)
    memory.init_db()
    store = _open_vector_store(settings)
    embedder = _embedder(settings)
    estimator = TiktokenEstimator()

    agent = ChatAgent(
        client,
        retrievers=[
            VectorStoreRetriever(store, embedder),
            ChatMemoryRetriever(memory),
            VectorStoreChatMemoryRetriever(store, embedder, top_k=10),
        ],
        transformers=[
            LastMaxTokenSizeContentTransformer(estimator, 1000, [ContentType.SHORT_TERM_MEMORY]),
            LastMaxTokenSizeContentTransformer(estimator, 1000, [ContentType.LONG_TERM_MEMORY]),
            LastMaxTokenSizeContentTransformer(estimator, 2000, [ContentType.EXTERNAL_KNOWLEDGE]),
        ],
        augmentors=[
            QuestionContextAugmentor(),
            SystemPromptChatMemoryAugmentor(LONG_TERM_TEMPLATE, [ContentType.LONG_TERM_MEMORY]),
            SystemPromptChatMemoryAugmentor(tags=[ContentType.SHORT_TERM_MEMORY]),
        ],
        listeners=[
            ChatMemoryAgentListener(memory),
            VectorStoreChatMemoryAgentListener(store, embedder),
        ],
        config=AgentConfig(tolerate_partial_retrieval=settings.tolerate_partial_retrieval),
        conversation_logger=conv_logger,
    )
    return Runtime(agent, memory, store, embedder)


class CLI:
    """Interactive chat loop."""

    def __init__(self, runtime: Runtime) -> None:
        self.runtime = runtime
        self.conversation_id = self._new_conversation_id()

    def _new_conversation_id(self) -> str:
        return f"cli-{uuid.uuid4().hex[:8]}"

    async def _process_message(self, message: str) -> None:
        ctx = PromptContext.of(Prompt.of(message), conversation_id=self.conversation_id)
        print()
        try:
            async for chunk in self.runtime.agent.stream(ctx):
                print(chunk.text, end="", flush=True)
            print()
        except RagentError as e:
            print(f"\nError: {e}")
            logger.warning("Request failed: %s", e)

    async def _handle_command(self, command: str) -> bool:
        """Handle a special command. Returns True if should continue, False to exit."""
        cmd = command.lower().strip()

        if cmd in ("/exit", "/quit", "exit", "quit"):
            print("\nGoodbye!")
            return False

        if cmd == "/reset":
            self.runtime.memory.clear(self.conversation_id)
            self.conversation_id = self._new_conversation_id()
            print(f"\nNew conversation: {self.conversation_id}")
            return True

        if cmd == "/help":
            print(BANNER)

        return True

    async def run(self) -> None:
        print(BANNER)
        print(f"Conversation: {self.conversation_id}\n")
        try:
            while True:
                try:
                    user_input = input("you> ").strip()
                except (KeyboardInterrupt, EOFError):
                    print("\nGoodbye!")
                    break

                if not user_input:
                    continue
                if user_input.startswith("/") or user_input.lower() in ("exit", "quit"):
                    if not await self._handle_command(user_input):
                        break
                    continue

                await self._process_message(user_input)
        finally:
            await self.runtime.agent.drain()
            await self.runtime.embedder.aclose()
            self.runtime.memory.close()


async def run_ingest(settings: Settings, path: str, keys: list[str], chunk_size: int) -> int:
    """Load a JSON document list into the vector store as external knowledge."""
    store = _open_vector_store(settings)
    embedder = _embedder(settings)
    try:
        fragments = JsonReader(path, keys).read()
        fragments = TokenTextSplitter(TiktokenEstimator(), chunk_size).split(fragments)
        return await ingest(store, embedder, fragments)
    finally:
        await embedder.aclose()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="ragent", description="Retrieval-augmented chat agent")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("chat", help="Interactive chat (default)")

    ingest_parser = subparsers.add_parser("ingest", help="Load JSON documents as knowledge")
    ingest_parser.add_argument("path", help="JSON file with a list of objects")
    ingest_parser.add_argument("--keys", nargs="*", default=[], help="Fields to index")
    ingest_parser.add_argument("--chunk-size", type=int, default=800, help="Tokens per chunk")
    return parser


async def run_cli(argv: list[str] | None = None) -> int:
    """Entry point for both subcommands. Returns an exit code."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = Settings.from_env()

    if args.command == "ingest":
        count = await run_ingest(settings, args.path, args.keys, args.chunk_size)
        print(f"Ingested {count} fragment(s)")
        return 0

    if not settings.groq_api_key:
        print("Error: GROQ_API_KEY environment variable not set")
        print("Please set it in your .env file or environment")
        return 1

    await CLI(build_runtime(settings)).run()
    return 0
