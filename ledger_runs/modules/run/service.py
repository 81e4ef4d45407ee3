from __future__ import annotations

import logging
import random
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import select, update as sql_update
from sqlalchemy.orm import Session

from ledger_runs.config import Settings, settings as default_settings
from ledger_runs.db.models import DifficultySnapshot, Run
from ledger_runs.modules.branch.context import build_branch_context, build_enhanced_context
from ledger_runs.modules.branch.dynamic import DynamicBranchingEngine
from ledger_runs.modules.branch.engine import BranchingEngine
from ledger_runs.modules.content.aliases import normalize_scene_code
from ledger_runs.modules.content.provider import ContentProvider
from ledger_runs.modules.content.schemas import ActionDef, Outcome, RoundDef, SceneDef
from ledger_runs.modules.difficulty.engine import (
    DifficultyTier,
    PartyDifficultyInputs,
    calculate_party_difficulty_inputs,
    compute_hidden_tier,
    flavor_for_tier,
)
from ledger_runs.modules.equipment.service import AdvantageState, EquipmentService
from ledger_runs.modules.events.service import EVENT_SCENE_CHOICE, EVENT_SCENE_FORCE_CHOICE, EventLog
from ledger_runs.modules.guilds.service import get_guild_settings
from ledger_runs.modules.notifications.sink import AfkNotification, LoggingNotificationSink, NotificationSink
from ledger_runs.modules.profiles.service import ProfileStore, is_downed
from ledger_runs.modules.rules.dice import (
    CRIT_FAIL,
    CRIT_SUCCESS,
    DIE_FACES,
    FAIL,
    SUCCESS,
    RollResult,
    classify_roll,
    roll_die,
)
from ledger_runs.modules.rules.effects import (
    EffectScratch,
    apply_effects,
    group_bonus_all_survive,
    lone_survivor_bonus,
    pick_outcome,
    threshold_rewards,
)
from ledger_runs.modules.run.errors import (
    ActionNotFoundError,
    DownedViolationError,
    RoundNotFoundError,
    RunNotFoundError,
    SceneNotFoundError,
    TurnViolationError,
)
from ledger_runs.utils.time import expiry_after, utc_now_naive

logger = logging.getLogger(__name__)

AFK_REASON = "afk_timeout"
SLEIGHT_DELTAS = {CRIT_SUCCESS: 2, SUCCESS: 1, FAIL: 0, CRIT_FAIL: -1}


@dataclass(slots=True)
class ActionResult:
    roll: RollResult
    outcome: Outcome
    summary: str
    tier: str
    completed_scene: str | None = None


def first_round_id(scene_id: str) -> str:
    return f"{scene_id}-R1"


def dedupe_party(party_ids: Sequence[str]) -> list[str]:
    deduped = list(dict.fromkeys(str(uid) for uid in party_ids if uid))
    return deduped or [str(uid) for uid in party_ids]


class RunService:
    """Run lifecycle: start, resolve actions, and sweep idle turns.

    Every collaborator is injected so tests and multiple content versions can
    run side by side; :func:`ledger_runs.modules.run.deps.build_run_service`
    wires the shipped defaults.
    """

    def __init__(
        self,
        db: Session,
        *,
        content: ContentProvider,
        equipment: EquipmentService,
        static_router: BranchingEngine,
        dynamic_router: DynamicBranchingEngine,
        rng: random.Random | None = None,
        notifier: NotificationSink | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.db = db
        self.content = content
        self.equipment = equipment
        self.static_router = static_router
        self.dynamic_router = dynamic_router
        self.rng = rng
        self.notifier = notifier or LoggingNotificationSink()
        self.settings = settings or default_settings
        self.profiles = ProfileStore(db)
        self.events = EventLog(db)

    def start_run(
        self,
        *,
        guild_id: str,
        channel_id: str,
        party_ids: Sequence[str],
        content_id: str | None = None,
        start_scene: str | None = None,
        now: datetime | None = None,
    ) -> Run:
        now = now or utc_now_naive()
        content_id = content_id or self.settings.default_content_id
        scene_id = normalize_scene_code(start_scene or self.settings.default_start_scene)
        manifest = self.content.get_manifest(content_id)
        party = dedupe_party(party_ids)
        active = party[0] if party else None

        run = Run(
            run_id=f"run_{uuid.uuid4().hex[:8]}",
            guild_id=guild_id,
            channel_id=channel_id,
            party_ids=party,
            content_id=content_id,
            content_version=manifest.version,
            scene_id=scene_id,
            round_id=first_round_id(scene_id),
            micro_ix=1,
            rng_seed=uuid.uuid4().hex[:12],
            flags={},
            sleight_score=0,
            sleight_history=[],
            turn_order=list(party),
            active_user_id=active,
            turn_expires_at=expiry_after(now, self.settings.turn_timeout_s) if active else None,
            afk_misses={},
            created_at=now,
            updated_at=now,
        )
        self.db.add(run)
        self.db.commit()
        logger.info("started run %s in guild %s with party %s at scene %s", run.run_id, guild_id, party, scene_id)
        return run

    def get_run(self, run_id: str) -> Run:
        run = self.db.get(Run, run_id)
        if run is None:
            raise RunNotFoundError(run_id)
        return run

    def _scene(self, run: Run) -> SceneDef:
        scene = self.content.get_scene(run.content_id, run.scene_id)
        if scene is None:
            raise SceneNotFoundError(run.content_id, run.scene_id)
        return scene

    def _round(self, run: Run, scene: SceneDef) -> RoundDef:
        round_def = scene.round(run.round_id)
        if round_def is None:
            raise RoundNotFoundError(run.round_id)
        return round_def

    def handle_action(
        self,
        run_id: str,
        user_id: str,
        action_id: str,
        *,
        forced_kind: str | None = None,
        autop: bool = False,
        reason: str | None = None,
        now: datetime | None = None,
    ) -> ActionResult:
        now = now or utc_now_naive()

        run = self.get_run(run_id)
        scene = self._scene(run)
        round_def = self._round(run, scene)
        action = round_def.action(action_id)
        if action is None:
            raise ActionNotFoundError(action_id)
        if run.active_user_id and run.active_user_id != user_id and not autop:
            raise TurnViolationError(run.active_user_id)
        actor = self.profiles.require(user_id)
        if is_downed(actor) and not autop:
            raise DownedViolationError(user_id)

        advantage = self.equipment.equipment_advantage_state(user_id, action.roll_tags)
        party_inputs = calculate_party_difficulty_inputs(run, self.profiles, self.equipment)
        guild = get_guild_settings(self.db, run.guild_id)
        tier = compute_hidden_tier(
            party_inputs.avg_level,
            party_inputs.avg_power,
            party_inputs.debuff_bias,
            guild.difficulty_bias,
        )
        self._record_difficulty(run, user_id, action.id, tier, party_inputs, guild.difficulty_bias, now)

        base_dc = self.settings.base_dc + advantage.dc_shift
        dc_offset = tier.dc_offset + advantage.dc_offset
        roll = self._resolve_roll(action, user_id, base_dc, dc_offset, advantage, forced_kind, autop)

        scratch = EffectScratch()
        scratch.seed(
            user_id,
            hp=int(actor.hp or 0) + advantage.hp_bonus,
            focus=int(actor.focus or 0) + advantage.focus_bonus,
        )
        outcome = pick_outcome(action.outcomes, roll.kind)
        summary = apply_effects(outcome.effects, scratch, user_id)
        self._commit_profile(user_id, scratch, run.run_id, now)

        run.flags = {**(run.flags or {}), **scratch.flags}

        self._record_sleight(run, user_id, action.id, roll.kind, now)

        completed_scene = None
        round_ids = scene.round_ids
        position = round_ids.index(run.round_id)
        if position < len(round_ids) - 1:
            run.round_id = round_ids[position + 1]
        else:
            completed_scene = scene.scene_id
            self._complete_scene(run, scene, user_id, now)

        misses = dict(run.afk_misses or {})
        misses[user_id] = 0
        run.afk_misses = misses
        self.equipment.tick_durability(user_id, amount=self.settings.durability_tick)

        self.events.append(
            run_id=run.run_id,
            user_id=user_id,
            type=EVENT_SCENE_FORCE_CHOICE if autop else EVENT_SCENE_CHOICE,
            payload={
                "action_id": action.id,
                "roll": roll.as_dict(),
                "outcome": outcome.model_dump(mode="json"),
                "summary": summary,
                "telemetry_tags": list(action.telemetry_tags),
                "tier": tier.tier,
                "tier_flavor": flavor_for_tier(tier.tier),
                "reason": reason,
                "completed_scene": completed_scene,
            },
            ts=now,
        )

        self._advance_turn(run, user_id, now)
        run.updated_at = now
        self.db.commit()
        logger.info(
            "run %s: %s took %s -> %s (roll %s vs dc %s, tier %s)",
            run.run_id,
            user_id,
            action.id,
            roll.kind,
            roll.roll,
            roll.dc,
            tier.tier,
        )
        return ActionResult(
            roll=roll,
            outcome=outcome,
            summary=summary,
            tier=tier.tier,
            completed_scene=completed_scene,
        )

    def _record_difficulty(
        self,
        run: Run,
        user_id: str,
        action_id: str,
        tier: DifficultyTier,
        party_inputs: PartyDifficultyInputs,
        guild_bias: float,
        now: datetime,
    ) -> None:
        self.db.add(
            DifficultySnapshot(
                run_id=run.run_id,
                user_id=user_id,
                action_id=action_id,
                tier=tier.tier,
                dc_offset=tier.dc_offset,
                avg_level=party_inputs.avg_level,
                avg_power=party_inputs.avg_power,
                debuff_bias=party_inputs.debuff_bias,
                guild_bias=guild_bias,
                created_at=now,
            )
        )
        self.db.commit()

    def _resolve_roll(
        self,
        action: ActionDef,
        user_id: str,
        base_dc: int,
        dc_offset: int,
        advantage: AdvantageState,
        forced_kind: str | None,
        autop: bool,
    ) -> RollResult:
        dc = base_dc + dc_offset
        if forced_kind:
            result = RollResult(kind=forced_kind, roll=0, dc=dc)
        elif action.roll is None:
            result = RollResult(kind=SUCCESS, roll=DIE_FACES, dc=dc)
        else:
            raw = roll_die(self.rng)
            if advantage.advantage != advantage.disadvantage:
                second = roll_die(self.rng)
                raw = max(raw, second) if advantage.advantage else min(raw, second)
            result = RollResult(kind=classify_roll(raw, dc), roll=raw, dc=dc)

        if result.kind == CRIT_FAIL and self.equipment.neutralizes_crit_fail(user_id):
            result = RollResult(kind=FAIL, roll=result.roll, dc=dc)

        if result.kind == FAIL and not autop and not forced_kind and self.equipment.should_reroll_fails(user_id):
            reroll = roll_die(self.rng)
            if reroll > result.roll:
                result = RollResult(kind=classify_roll(reroll, dc), roll=reroll, dc=dc)
        return result

    def _commit_profile(self, user_id: str, scratch: EffectScratch, run_id: str, now: datetime) -> None:
        self.profiles.commit(
            user_id,
            stats=scratch.stats.get(user_id),
            deltas=scratch.deltas.get(user_id),
            coin_loss_protection=self.equipment.has_coin_loss_protection(user_id),
            fragments_boost=self.equipment.fragments_boost(user_id),
            rarity_of=self.equipment.rarity_of,
            source_run_id=run_id,
            now=now,
        )

    def _record_sleight(self, run: Run, user_id: str, action_id: str, kind: str, now: datetime) -> None:
        delta = SLEIGHT_DELTAS.get(kind, 0) + self.equipment.loadout_sleight_bonus(user_id, kind)
        run.sleight_score = int(run.sleight_score or 0) + delta
        history = list(run.sleight_history or [])
        history.append(
            {
                "ts": now.isoformat(),
                "user_id": user_id,
                "action_id": action_id,
                "kind": kind,
                "delta": delta,
                "score": run.sleight_score,
            }
        )
        run.sleight_history = history[-self.settings.sleight_history_limit :]

    def _complete_scene(self, run: Run, scene: SceneDef, user_id: str, now: datetime) -> None:
        rewards = EffectScratch()
        self._seed_live(rewards, user_id)
        apply_effects(threshold_rewards(int(run.sleight_score or 0), scene.threshold_rewards), rewards, user_id)

        party = [str(uid) for uid in (run.party_ids or []) if uid]
        standing = [uid for uid in party if not is_downed(self.profiles.get(uid))]
        if party and len(standing) == len(party):
            apply_effects(group_bonus_all_survive(), rewards, user_id)
        elif len(party) > 1 and len(standing) == 1:
            survivor = standing[0]
            self._seed_live(rewards, survivor)
            apply_effects(lone_survivor_bonus(), rewards, survivor)

        for recipient in rewards.stats:
            self._commit_profile(recipient, rewards, run.run_id, now)
        if rewards.flags:
            run.flags = {**(run.flags or {}), **rewards.flags}

        next_scene = self._next_scene(run, scene)
        logger.info("run %s completed scene %s -> %s", run.run_id, scene.scene_id, next_scene)
        run.scene_id = next_scene
        run.round_id = first_round_id(next_scene)
        run.micro_ix = int(run.micro_ix or 0) + 1
        run.sleight_score = 0

    def _seed_live(self, scratch: EffectScratch, user_id: str) -> None:
        if user_id in scratch.stats:
            return
        profile = self.profiles.require(user_id)
        scratch.seed(user_id, hp=int(profile.hp or 0), focus=int(profile.focus or 0))

    def _next_scene(self, run: Run, scene: SceneDef) -> str:
        flags = run.flags or {}
        for arrival in scene.arrivals:
            name = arrival.flag_name
            if name and flags.get(name):
                return arrival.goto
        for arrival in scene.arrivals:
            if arrival.is_else:
                return arrival.goto
        # Registered routers take precedence over the configured default arrival.
        if self.dynamic_router.handles(scene.scene_id):
            ctx = build_enhanced_context(self.db, run, self.events)
            return normalize_scene_code(self.dynamic_router.determine_next_scene(scene.scene_id, ctx, self.events))
        if self.static_router.handles(scene.scene_id):
            ctx = build_branch_context(self.db, run, self.events)
            return normalize_scene_code(self.static_router.determine_branch(scene.scene_id, ctx, self.events))
        return normalize_scene_code(self.settings.default_arrival_scene)

    def _advance_turn(self, run: Run, acting_user_id: str, now: datetime) -> None:
        order = [str(uid) for uid in (run.turn_order or []) if uid]
        if order:
            current = run.active_user_id if run.active_user_id in order else acting_user_id
            position = order.index(current) if current in order else -1
            for step in range(1, len(order) + 1):
                candidate = order[(position + step) % len(order)]
                if not is_downed(self.profiles.get(candidate)):
                    run.active_user_id = candidate
                    break
        if run.active_user_id:
            run.turn_expires_at = expiry_after(now, self.settings.turn_timeout_s)
        else:
            run.turn_expires_at = None

    def process_afk_timeouts(self, now: datetime | None = None) -> list[AfkNotification]:
        now = now or utc_now_naive()
        overdue = self.db.execute(
            select(Run.run_id, Run.turn_expires_at)
            .where(
                Run.turn_expires_at.is_not(None),
                Run.turn_expires_at <= now,
                Run.active_user_id.is_not(None),
            )
            .order_by(Run.turn_expires_at.asc())
        ).all()
        self.db.rollback()

        sent: list[AfkNotification] = []
        for run_id, observed in overdue:
            try:
                notification = self._resolve_afk(run_id, observed, now)
                if notification is not None:
                    self.notifier.send(notification)
                    sent.append(notification)
            except Exception:
                logger.exception("afk sweep failed for run %s", run_id)
                self.db.rollback()
        return sent

    def _resolve_afk(self, run_id: str, observed: datetime, now: datetime) -> AfkNotification | None:
        claim = self.db.execute(
            sql_update(Run)
            .where(Run.run_id == run_id, Run.turn_expires_at == observed)
            .values(turn_expires_at=expiry_after(now, self.settings.turn_timeout_s))
            .execution_options(synchronize_session=False)
        )
        if int(claim.rowcount or 0) != 1:
            self.db.rollback()
            logger.info("afk timeout for run %s already handled", run_id)
            return None
        self.db.commit()

        run = self.get_run(run_id)
        user_id = run.active_user_id
        action = self._round(run, self._scene(run)).default_action()
        if action is None:
            raise ActionNotFoundError(f"{run.round_id}:<default>")

        self.handle_action(run_id, user_id, action.id, forced_kind=FAIL, autop=True, reason=AFK_REASON, now=now)

        run = self.get_run(run_id)
        misses = dict(run.afk_misses or {})
        misses[user_id] = int(misses.get(user_id, 0)) + 1
        run.afk_misses = misses
        self.db.commit()
        logger.warning("run %s: %s timed out, auto-resolved %s", run_id, user_id, action.id)
        return AfkNotification(
            run_id=run_id,
            user_id=user_id,
            message=f"<@{user_id}> ran out of time; the party moved on with '{action.label or action.id}'.",
            channel_id=run.channel_id or "",
        )
