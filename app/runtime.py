from __future__ import annotations

import random

import structlog

from app.core.clock import DeadlineClock
from app.core.config import Settings, get_settings
from app.game.duels.registry import LiveDuelRegistry
from app.game.duels.settlement import DuelSettlement
from app.game.matchmaking.bots import BotFactory, BotPolicy
from app.game.matchmaking.pool import WaitingPool
from app.game.matchmaking.service import MatchmakingCoordinator
from app.game.questions.generator import HttpQuestionGenerator, QuestionGenerator
from app.game.questions.supplier import QuestionSupplier
from app.game.standings.challenges import ChallengeRegistry
from app.game.standings.connections import ConnectionHub
from app.game.standings.standings import StandingsBroadcaster, StandingsCache, StandingsLoader, load_top_standings

logger = structlog.get_logger(__name__)


class DuelRuntime:
    def __init__(
        self,
        *,
        settings: Settings | None = None,
        clock: DeadlineClock | None = None,
        generator: QuestionGenerator | None = None,
        standings_loader: StandingsLoader | None = None,
        rng: random.Random | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.clock = clock or DeadlineClock()
        self.rng = rng or random.Random()

        self._owned_generator: HttpQuestionGenerator | None = None
        if generator is None and self.settings.question_generator_url:
            self._owned_generator = HttpQuestionGenerator(
                base_url=self.settings.question_generator_url,
                timeout=self.settings.question_generation_timeout_seconds,
            )
            generator = self._owned_generator

        self.hub = ConnectionHub()
        self.supplier = QuestionSupplier(
            generator=generator,
            clock=self.clock,
            timeout_seconds=self.settings.question_generation_timeout_seconds,
            attempts=self.settings.question_generation_attempts,
        )
        self.settlement = DuelSettlement(push=self.hub, clock=self.clock)
        self.registry = LiveDuelRegistry(
            supplier=self.supplier,
            clock=self.clock,
            push=self.hub,
            total_rounds=self.settings.live_total_rounds,
            round_seconds=self.settings.live_round_seconds,
            result_pause_seconds=self.settings.live_result_pause_seconds,
            settlement=self.settlement,
            rng=self.rng,
        )
        self.pool = WaitingPool()
        self.bots = BotFactory(
            policy=BotPolicy(
                streak_nudge=self.settings.bot_streak_nudge,
                min_accuracy=self.settings.bot_min_accuracy,
                max_accuracy=self.settings.bot_max_accuracy,
            ),
            rng=self.rng,
        )
        self.matchmaker = MatchmakingCoordinator(
            pool=self.pool,
            registry=self.registry,
            bots=self.bots,
            clock=self.clock,
            push=self.hub,
            bot_fallback_seconds=self.settings.matchmaking_bot_fallback_seconds,
            rng=self.rng,
        )
        self.challenges = ChallengeRegistry(
            hub=self.hub,
            registry=self.registry,
            pool=self.pool,
            clock=self.clock,
            ttl_seconds=self.settings.challenge_ttl_seconds,
            rng=self.rng,
        )
        self.standings = StandingsBroadcaster(
            cache=StandingsCache(
                loader=standings_loader or load_top_standings,
                clock=self.clock,
                top_n=self.settings.standings_top_n,
            ),
            hub=self.hub,
            refresh_seconds=self.settings.standings_refresh_seconds,
        )
        self._started = False

    @property
    def started(self) -> bool:
        return self._started

    async def start(self) -> None:
        if self._started:
            return
        self.standings.start()
        self._started = True
        logger.info(
            "duel_runtime_started",
            generator_enabled=self.settings.question_generator_url is not None,
            live_total_rounds=self.settings.live_total_rounds,
        )

    async def shutdown(self) -> None:
        if not self._started:
            return
        drained = await self.pool.clear()
        await self.challenges.shutdown()
        await self.registry.shutdown()
        await self.standings.stop()
        if self._owned_generator is not None:
            await self._owned_generator.aclose()
        self._started = False
        logger.info("duel_runtime_stopped", drained_waiters=drained)
