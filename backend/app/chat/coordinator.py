"""Chat turn coordinator.

Drives one chat request through
Authorizing -> ContextBuilding -> Prompting -> DirectiveParsing -> Persisting -> Responded,
with Error reachable from every state. Nothing is written before Persisting,
so early termination leaves no chat turn and no version behind.
"""

import logging
import time
from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from backend.app.chat.context import ContextAssembler, ContextBundle
from backend.app.chat.directives import ParsedReply, parse_correction_directive
from backend.app.chat.prompts import build_document_chat_prompt, build_general_chat_prompt
from backend.app.db.context import RequestContext
from backend.app.db.repositories import ChatTurnRepository, EntitlementRepository, VersionStore
from backend.app.errors import ExtractionError, ProRequiredError, ServiceError
from backend.app.llm.client import LLMClient, LLMFailure
from backend.app.models.common import Tier
from backend.app.ratelimit import Bucket, RequestThrottle
from backend.app.utils.logging import FlowContext, StructuredFlowLogger
from backend.app.utils.metrics import PrometheusDomainMetrics

logger = logging.getLogger(__name__)


class ChatState(str, Enum):
    """Chat request states."""

    authorizing = "authorizing"
    context_building = "context_building"
    prompting = "prompting"
    directive_parsing = "directive_parsing"
    persisting = "persisting"
    responded = "responded"
    error = "error"


@dataclass(frozen=True)
class ChatReply:
    """What the caller gets back: markers are never included."""

    ai_response: str
    document_id: UUID | None
    version_number: int | None = None


@dataclass
class ChatRun:
    """Per-request state threaded through the coordinator."""

    ctx: RequestContext
    document_id: UUID | None
    user_message: str
    state: ChatState = ChatState.authorizing
    bundle: ContextBundle | None = None
    general_history: str = ""
    raw_reply: str | None = None
    parsed: ParsedReply | None = None
    version_number: int | None = None


class ChatCoordinator:
    """Runs chat requests for documents and for general questions."""

    def __init__(
        self,
        *,
        entitlements: EntitlementRepository,
        assembler: ContextAssembler,
        versions: VersionStore,
        chat_turns: ChatTurnRepository,
        llm: LLMClient,
        throttle: RequestThrottle | None = None,
        temperature: float = 0.5,
    ) -> None:
        self._entitlements = entitlements
        self._assembler = assembler
        self._versions = versions
        self._chat_turns = chat_turns
        self._llm = llm
        self._throttle = throttle
        self._temperature = temperature
        self._flow_logger = StructuredFlowLogger()
        self._metrics = PrometheusDomainMetrics()

    async def handle(
        self, ctx: RequestContext, document_id: UUID | None, user_message: str
    ) -> ChatReply:
        """Process one chat message.

        Args:
            ctx: Caller identity
            document_id: Target document, or None for general chat
            user_message: The caller's message

        Returns:
            ChatReply with the display message and any new version number

        Raises:
            RateLimitError: Caller is over the chat quota
            ProRequiredError: Document chat requested without the pro tier
            DocumentNotFoundError: Document is missing or not the caller's
            ExtractionError: LLM call failed or timed out
            PersistenceError: Version or chat turn write failed
        """
        run = ChatRun(ctx=ctx, document_id=document_id, user_message=user_message)
        flow = FlowContext(flow="chat", user_id=ctx.user_id, document_id=document_id)

        steps = (
            (ChatState.authorizing, self._authorize),
            (ChatState.context_building, self._build_context),
            (ChatState.prompting, self._prompt),
            (ChatState.directive_parsing, self._parse),
            (ChatState.persisting, self._persist),
        )

        for state, step in steps:
            run.state = state
            start = time.perf_counter()
            try:
                await step(run)
            except ServiceError as e:
                self._flow_logger.log_transition(
                    flow, state.value, "error", _elapsed_ms(start), type(e).__name__
                )
                run.state = ChatState.error
                raise
            self._flow_logger.log_transition(flow, state.value, "success", _elapsed_ms(start))

        run.state = ChatState.responded
        assert run.parsed is not None

        return ChatReply(
            ai_response=run.parsed.display_message,
            document_id=document_id,
            version_number=run.version_number,
        )

    async def _authorize(self, run: ChatRun) -> None:
        if self._throttle is not None:
            self._throttle.check(run.ctx, Bucket.chat)

        if run.document_id is None:
            return

        # Read only: an unseen user is free and nothing is written on denial
        entitlement = await self._entitlements.get(run.ctx.user_id)
        if entitlement is None or entitlement.tier is not Tier.pro:
            raise ProRequiredError()

    async def _build_context(self, run: ChatRun) -> None:
        if run.document_id is None:
            run.general_history = await self._assembler.general_history(run.ctx)
        else:
            run.bundle = await self._assembler.assemble(run.ctx, run.document_id)

    async def _prompt(self, run: ChatRun) -> None:
        if run.bundle is not None:
            system_prompt = build_document_chat_prompt(
                analysis=run.bundle.analysis_text,
                history=run.bundle.history,
                latest_text=run.bundle.latest_text,
                user_message=run.user_message,
                window=self._assembler.window,
            )
        else:
            system_prompt = build_general_chat_prompt(
                history=run.general_history, window=self._assembler.window
            )

        reply = await self._llm.complete(
            system_prompt=system_prompt,
            user_prompt=run.user_message,
            temperature=self._temperature,
        )
        if isinstance(reply, LLMFailure):
            logger.error(f"Chat LLM call failed with upstream status {reply.status}")
            raise ExtractionError("chat", reply.status, reply.detail)

        run.raw_reply = reply.text

    async def _parse(self, run: ChatRun) -> None:
        assert run.raw_reply is not None
        parsed = parse_correction_directive(run.raw_reply)

        if run.document_id is None and parsed.has_correction:
            # General chat has no document to version
            parsed = ParsedReply(display_message=parsed.display_message, candidate_body=None)

        run.parsed = parsed

    async def _persist(self, run: ChatRun) -> None:
        assert run.parsed is not None

        # Version first: a failed append must fail the request before the
        # turn that announces the correction is stored
        if run.document_id is not None and run.parsed.candidate_body is not None:
            run.version_number = await self._versions.append(
                run.document_id, run.parsed.candidate_body
            )
            self._metrics.inc_version("correction")
            logger.info(f"Document {run.document_id} corrected to version {run.version_number}")

        await self._chat_turns.append(
            run.ctx,
            document_id=run.document_id,
            user_message=run.user_message,
            ai_response=run.parsed.display_message,
        )
        self._metrics.inc_chat_turn("document" if run.document_id else "general")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000
