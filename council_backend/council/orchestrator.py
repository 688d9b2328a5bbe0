"""Council session orchestration: validation, the three stage barriers, and the event stream."""

import asyncio
import logging
from typing import Any, AsyncIterator, Dict, List, Optional, Sequence, Set

from ..config import MIN_COUNCIL_SIZE, CouncilConfig
from ..providers import ModelBackend
from ..storage import MessageSink
from . import events
from .events import Event, EventChannel
from .models import (
    CouncilOutcome,
    CouncilSession,
    CouncilStageError,
    CouncilState,
    CouncilValidationError,
)
from .ranking import calculate_aggregate_rankings
from .stage1 import stage1_collect_responses
from .stage2 import stage2_collect_rankings
from .stage3 import stage3_synthesize_final
from .utils import PersistFn, make_limiter

logger = logging.getLogger(__name__)

COUNCIL_MODE = "council"
NO_RESPONDERS = "All models failed to respond in Stage 1."
SESSION_START_FAILED = "Failed to start council session."


class CouncilOrchestrator:
    """Runs council sessions against an injected model backend and message sink."""

    def __init__(
        self,
        config: CouncilConfig,
        backend: ModelBackend,
        sink: Optional[MessageSink] = None,
    ):
        self.config = config
        self.backend = backend
        self.sink = sink
        # Sessions keep running after a client disconnects; hold references until done.
        self._running: Set[asyncio.Task] = set()

    # ========== Validation ==========

    def validate(self, prompt: Optional[str], selected_models: Optional[Sequence[str]]) -> None:
        """Reject a request before any stream is opened."""
        if not prompt or not prompt.strip():
            raise CouncilValidationError("Prompt is required")
        min_models = max(MIN_COUNCIL_SIZE, self.config.min_models)
        if not selected_models or len(selected_models) < min_models:
            raise CouncilValidationError(
                f"At least {min_models} models are required for a council."
            )
        if any(not isinstance(m, str) or not m.strip() for m in selected_models):
            raise CouncilValidationError("Model IDs must be non-empty strings.")

    def resolve_chairman(self, selected_models: Sequence[str], chairman: Optional[str] = None) -> str:
        """Explicit chairman, else the first selected model, else the configured default."""
        if chairman and chairman.strip():
            return chairman
        if selected_models:
            return selected_models[0]
        return self.config.default_chairman

    # ========== Session setup ==========

    async def prepare_session(
        self,
        prompt: str,
        selected_models: Sequence[str],
        conversation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        chairman: Optional[str] = None,
    ) -> CouncilSession:
        """Build the session and, when a sink is present, attach conversation history and the user message."""
        session = CouncilSession(
            prompt=prompt,
            models=list(selected_models),
            chairman=self.resolve_chairman(selected_models, chairman),
            conversation_id=conversation_id,
            user_id=user_id or self.config.default_user_id,
        )
        if self.sink is None:
            return session

        if not session.conversation_id:
            try:
                conversation = await self.sink.create_conversation(session.user_id, "New Chat")
                session.conversation_id = conversation.get("id")
            except Exception as e:
                logger.warning("Failed to create conversation for council: %s", e)

        if session.conversation_id:
            session.history = await self._load_history(session)
            try:
                message = await self.sink.create_user_message(
                    prompt, session.conversation_id, None, COUNCIL_MODE, session.user_id,
                )
                session.user_message_id = message.get("id")
            except Exception as e:
                logger.warning("Failed to persist council user message: %s", e)

        return session

    async def _load_history(self, session: CouncilSession) -> List[Dict[str, str]]:
        try:
            context = await self.sink.get_conversation_context(
                session.conversation_id, self.config.history_limit, session.user_id,
            )
        except Exception as e:
            logger.warning("Failed to fetch conversation context for council: %s", e)
            return []
        return [
            {
                "role": "user" if msg.get("sender_type") == "user" else "assistant",
                "content": msg.get("content", ""),
            }
            for msg in context
            if msg.get("content")
        ]

    def _persister(self, session: CouncilSession, outcome: CouncilOutcome) -> Optional[PersistFn]:
        if self.sink is None:
            return None
        sink = self.sink

        async def persist(content: str, model: str, stage: int, reply_to_id: Optional[str]) -> None:
            metadata: Dict[str, Any] = {
                "stage": stage,
                "council_session_id": session.session_id,
                "is_council_hidden": stage != 3,
            }
            if stage == 3:
                metadata["label_to_model"] = dict(outcome.label_to_model)
                metadata["aggregate_rankings"] = dict(outcome.aggregate_rankings)
            try:
                await sink.record_message(
                    content, model, False, session.conversation_id, reply_to_id,
                    COUNCIL_MODE, session.user_id, metadata,
                )
            except Exception as e:
                logger.warning("Failed to persist Stage %d council message from %s: %s", stage, model, e)

        return persist

    # ========== Stages ==========

    async def run(self, session: CouncilSession, channel: EventChannel) -> CouncilOutcome:
        """Run the three stages in order, each a full barrier, publishing events onto ``channel``.

        Ends with ``complete`` unless Stage 1 produced no responders, in which
        case exactly one ``error`` is published instead.
        """
        outcome = CouncilOutcome(session_id=session.session_id, state=CouncilState.INIT)
        persist = self._persister(session, outcome)
        limiter = make_limiter(self.config.max_concurrency)
        logger.info(
            "Council session %s: %d models, chairman %s",
            session.session_id, len(session.models), session.chairman,
        )

        try:
            outcome.state = CouncilState.STAGE1
            outcome.stage1 = await stage1_collect_responses(
                session, self.backend, channel, persist,
                max_length=self.config.stage1_max_length, limiter=limiter,
            )
            if not outcome.stage1:
                raise CouncilStageError(NO_RESPONDERS)

            outcome.state = CouncilState.STAGE2
            outcome.stage2, outcome.label_to_model = await stage2_collect_rankings(
                session, outcome.stage1, self.backend, channel, persist,
                max_length=self.config.stage2_max_length, limiter=limiter,
                template=self.config.ranking_template,
            )
            outcome.aggregate_rankings = calculate_aggregate_rankings(outcome.stage2)

            outcome.state = CouncilState.STAGE3
            outcome.stage3 = await stage3_synthesize_final(
                session, outcome.stage1, outcome.stage2, self.backend, channel, persist,
                max_length=self.config.stage3_max_length,
                template=self.config.chairman_template,
            )

            outcome.state = CouncilState.COMPLETE
            channel.publish(events.complete(outcome.label_to_model, outcome.aggregate_rankings))
            logger.info("Council session %s complete", session.session_id)
        except CouncilStageError as e:
            logger.error("Council session %s failed: %s", session.session_id, e)
            outcome.state = CouncilState.ERROR
            outcome.error = str(e)
            channel.publish(events.error(str(e)))
        except Exception as e:
            logger.exception("Council session %s crashed", session.session_id)
            outcome.state = CouncilState.ERROR
            outcome.error = str(e)
            channel.publish(events.error(str(e)))

        return outcome

    # ========== Streaming ==========

    async def stream(
        self,
        prompt: str,
        selected_models: Sequence[str],
        conversation_id: Optional[str] = None,
        user_id: Optional[str] = None,
        chairman: Optional[str] = None,
    ) -> AsyncIterator[Event]:
        """Yield session events in publish order. Call ``validate`` first.

        The session runs as its own task; if the consumer stops reading, the
        session still runs to completion.
        """
        channel = EventChannel()

        async def run_session() -> Optional[CouncilOutcome]:
            try:
                try:
                    session = await self.prepare_session(
                        prompt, selected_models, conversation_id, user_id, chairman,
                    )
                except Exception:
                    logger.exception("Failed to prepare council session")
                    channel.publish(events.error(SESSION_START_FAILED))
                    return None
                return await self.run(session, channel)
            finally:
                channel.close()

        task = asyncio.create_task(run_session())
        self._running.add(task)
        task.add_done_callback(self._running.discard)

        async for event in channel.drain():
            yield event
