"""
League Service - League lifecycle and run linkage.

Owns every state change of a challenge league:
- create, join (by code or invite), leave, delete
- link / unlink the run that represents a participant
- evaluate (recompute challenge results) and complete (final evaluation, freeze)

Business rules live here; rows are read and written through the
DatabaseInterface so any backend (SQLite, Supabase) can be used.
"""

import logging
import secrets
import uuid
from functools import lru_cache
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Any

from .. import config
from ..challenges import ParticipantRun, aggregate_standings, evaluate, get_challenge
from ..errors import (
    CapacityError,
    DuplicateError,
    InactiveLeagueError,
    LinkConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from ..models import (
    ChallengeResult,
    ChallengeSelection,
    Invite,
    League,
    LeagueChallenge,
    LeagueDetails,
    LeaguePreview,
    Participant,
    RequestContext,
    Run,
    StandingEntry,
)
from ..storage import ConstraintError, DatabaseInterface, get_database
from ..utils.timeutils import as_utc, to_iso, utc_now

logger = logging.getLogger(__name__)

LEAGUE_CODE_BYTES = 4


class LeagueService:
    """
    Service layer for challenge leagues.

    Every user-initiated operation takes an explicit RequestContext naming
    the acting user and their game version.
    """

    def __init__(self, db: Optional[DatabaseInterface] = None):
        self._db = db

    @property
    def db(self) -> DatabaseInterface:
        """Database from the factory unless one was injected."""
        if self._db is None:
            self._db = get_database()
        return self._db

    # =========================================================================
    # CREATE / JOIN / LEAVE
    # =========================================================================

    def create_league(
        self,
        ctx: RequestContext,
        name: str,
        end_date: Optional[datetime],
        admin_run_id: str,
        challenge_selections: List[ChallengeSelection],
        invitee_ids: Optional[List[str]] = None,
        description: Optional[str] = None
    ) -> LeagueDetails:
        """
        Create a league with the caller as admin.

        Args:
            ctx: Acting user (becomes the admin)
            name: League name
            end_date: When the league ends; defaults to
                      LEAGUE_DEFAULT_DURATION_DAYS from now
            admin_run_id: The admin's run, linked to their slot
            challenge_selections: 25-30 catalog challenges, optionally with
                                  custom points
            invitee_ids: Friends to invite
            description: Optional free text

        Returns:
            The created league with its challenges and admin participant

        Raises:
            ValidationError: Bad name, challenge set, invitees or end date
            NotFoundError: Admin run missing or owned by someone else
            LinkConflictError: Admin run already linked to an active league
        """
        now = utc_now()
        name = (name or '').strip()
        if not config.LEAGUE_NAME_MIN_LENGTH <= len(name) <= config.LEAGUE_NAME_MAX_LENGTH:
            raise ValidationError(
                f"League name length {len(name)} out of range",
                f"League name must be {config.LEAGUE_NAME_MIN_LENGTH}-"
                f"{config.LEAGUE_NAME_MAX_LENGTH} characters."
            )

        challenges = self._validate_challenges(challenge_selections)
        invitees = self._validate_invitees(ctx.user_id, invitee_ids or [])
        end_date = self._validate_end_date(end_date, now)

        run = self._load_owned_run(ctx, admin_run_id)
        self._check_run_free(run.id, exclude_league_id=None)

        league_id = str(uuid.uuid4())
        league = League(
            id=league_id,
            name=name,
            admin_user_id=ctx.user_id,
            league_code=self._generate_code(),
            max_participants=config.LEAGUE_MAX_PARTICIPANTS,
            champs_run_end_date=end_date,
            status='active',
            game_version=ctx.game_version,
            description=description,
            created_at=now,
        )
        admin = Participant(
            league_id=league_id,
            user_id=ctx.user_id,
            weekly_performance_id=run.id,
            joined_at=now,
        )
        invite_rows = [
            {
                'id': str(uuid.uuid4()),
                'inviter_id': ctx.user_id,
                'invitee_id': invitee_id,
                'token': secrets.token_urlsafe(16),
                'status': 'pending',
                'created_at': to_iso(now),
            }
            for invitee_id in invitees
        ]

        try:
            self.db.create_league(
                league=self._league_row(league),
                challenges=[c.model_dump() for c in challenges],
                admin_participant=self._participant_row(admin),
                invites=invite_rows,
            )
        except ConstraintError as e:
            # Only a league code collision can get here
            logger.warning(f"[!] League creation conflict: {e}")
            raise ValidationError(str(e), "Could not create the league, please try again.")

        logger.info(
            f"[+] Created league {league_id} '{name}' with {len(challenges)} challenges, "
            f"{len(invitees)} invites"
        )
        return LeagueDetails(
            league=league,
            challenges=challenges,
            participants=[admin],
            standings=aggregate_standings([admin], []),
        )

    def join_league(self, ctx: RequestContext, code: str) -> Participant:
        """
        Join a league by its code.

        Raises:
            NotFoundError: Unknown code
            InactiveLeagueError: League already completed
            DuplicateError: Caller is already a participant
            CapacityError: League is full
        """
        row = self.db.get_league_by_code(self._normalize_code(code))
        if row is None:
            raise NotFoundError(f"No league with code {code!r}", "League code not found.")
        return self._join(self._to_league(row), ctx.user_id)

    def preview_league(self, code: str) -> LeaguePreview:
        """Public summary of a league for its join page."""
        row = self.db.get_league_by_code(self._normalize_code(code))
        if row is None:
            raise NotFoundError(f"No league with code {code!r}", "League code not found.")
        league = self._to_league(row)
        return LeaguePreview(
            league_id=league.id,
            name=league.name,
            admin_user_id=league.admin_user_id,
            status=league.status,
            participant_count=len(self.db.get_participants(league.id)),
            max_participants=league.max_participants,
            champs_run_end_date=league.champs_run_end_date,
        )

    def leave_league(self, ctx: RequestContext, league_id: str) -> None:
        """Leave an active league. The admin cannot leave their own league."""
        league = self._get_active_league(league_id)
        if league.admin_user_id == ctx.user_id:
            raise PermissionDeniedError(
                f"Admin {ctx.user_id} cannot leave league {league_id}",
                "The league admin cannot leave. Delete the league instead."
            )
        self._require_participant(league_id, ctx.user_id)
        self.db.remove_participant(league_id, ctx.user_id)
        logger.info(f"User {ctx.user_id} left league {league_id}")

    def delete_league(self, ctx: RequestContext, league_id: str) -> None:
        """Delete a league and everything in it (admin only)."""
        league = self._get_league(league_id)
        self._require_admin(league, ctx.user_id)
        self.db.delete_league(league_id)
        logger.info(f"[+] Deleted league {league_id}")

    # =========================================================================
    # INVITES
    # =========================================================================

    def list_invites(self, ctx: RequestContext) -> List[Invite]:
        """Pending invites addressed to the caller."""
        return [Invite(**row) for row in self.db.list_pending_invites(ctx.user_id)]

    def respond_to_invite(self, ctx: RequestContext, invite_id: str, accept: bool) -> Invite:
        """
        Accept or decline an invite.

        Accepting follows the same rules as joining by code.
        """
        row = self.db.get_invite(invite_id)
        if row is None or row['invitee_id'] != ctx.user_id:
            raise NotFoundError(f"Invite {invite_id} not found for {ctx.user_id}", "Invite not found.")
        if row['status'] != 'pending':
            raise ValidationError(
                f"Invite {invite_id} is already {row['status']}",
                f"This invite was already {row['status']}."
            )

        if accept:
            self._join(self._get_league(row['league_id']), ctx.user_id)
        else:
            self.db.update_invite_status(invite_id, 'declined')

        return Invite(**self.db.get_invite(invite_id))

    # =========================================================================
    # RUN LINKAGE
    # =========================================================================

    def link_run(self, ctx: RequestContext, league_id: str, run_id: Optional[str]) -> Participant:
        """
        Link a run to the caller's slot, or unlink with run_id=None.

        Linking the run that is already linked is a no-op.

        Raises:
            NotFoundError: Unknown league or run, or the run is not the caller's
            InactiveLeagueError: League already completed
            ValidationError: Run is for another game version
            LinkConflictError: Run is linked to another active league
        """
        league = self._get_active_league(league_id)
        participant = self._require_participant(league_id, ctx.user_id)

        if run_id is not None:
            if participant.weekly_performance_id == run_id:
                return participant
            run = self._load_owned_run(ctx, run_id)
            if run.game_version != league.game_version:
                raise ValidationError(
                    f"Run {run_id} is {run.game_version}, league {league_id} is {league.game_version}",
                    f"This league is for {league.game_version} runs."
                )
            self._check_run_free(run_id, exclude_league_id=league_id)

        self.db.update_participant_run(league_id, ctx.user_id, run_id)
        logger.info(f"User {ctx.user_id} linked run {run_id} in league {league_id}")
        return participant.model_copy(update={'weekly_performance_id': run_id})

    # =========================================================================
    # EVALUATION / COMPLETION
    # =========================================================================

    def evaluate_league(self, league_id: str) -> List[StandingEntry]:
        """
        Recompute all challenge results of an active league.

        Returns:
            Fresh standings
        """
        league = self._get_active_league(league_id)
        return self._evaluate(league)

    def complete_league(self, ctx: RequestContext, league_id: str) -> League:
        """Evaluate one final time and freeze the league (admin only)."""
        league = self._get_league(league_id)
        self._require_admin(league, ctx.user_id)
        if not league.is_active():
            raise InactiveLeagueError(league_id)
        return self._finalize(league)

    def complete_expired_leagues(self, now: Optional[datetime] = None) -> List[str]:
        """
        Complete every active league past its end date.

        A failure on one league is logged and does not stop the others.

        Returns:
            IDs of the leagues completed
        """
        now = as_utc(now) if now else utc_now()
        completed = []
        for row in self.db.list_expired_leagues(to_iso(now)):
            league = self._to_league(row)
            try:
                self._finalize(league, now=now)
                completed.append(league.id)
            except Exception:
                logger.exception(f"[!] Failed to complete league {league.id}")
        return completed

    def _evaluate(self, league: League, now: Optional[datetime] = None) -> List[StandingEntry]:
        """Run every challenge of the league and replace stored results."""
        participants = self._participants(league.id)
        participant_runs = [
            ParticipantRun(
                user_id=p.user_id,
                run=self._load_linked_run(p),
                joined_at=p.joined_at,
            )
            for p in participants
        ]

        results: List[ChallengeResult] = []
        for selected in self._league_challenges(league.id):
            challenge = get_challenge(selected.challenge_id)
            if challenge is None:
                logger.warning(f"[!] League {league.id} references unknown challenge {selected.challenge_id}")
                continue
            outcomes = evaluate(challenge.with_points(selected.points), participant_runs)
            results.extend(
                ChallengeResult(
                    league_id=league.id,
                    challenge_id=challenge.id,
                    user_id=o.user_id,
                    points_awarded=o.points_awarded,
                    rank=o.rank,
                    metric_value=o.metric_value,
                    achieved_at=o.achieved_at,
                    game_achieved=o.game_achieved,
                )
                for o in outcomes
            )

        self.db.replace_challenge_results(league.id, [self._result_row(r) for r in results])
        self.db.update_league(league.id, {'last_evaluated_at': to_iso(now or utc_now())})

        standings = aggregate_standings(participants, results)
        logger.info(
            f"Evaluated league {league.id}: {len(results)} results, "
            f"leader={standings[0].user_id if standings else None}"
        )
        return standings

    def _finalize(self, league: League, now: Optional[datetime] = None) -> League:
        now = now or utc_now()
        self._evaluate(league, now=now)
        self.db.update_league(league.id, {'status': 'completed', 'completed_at': to_iso(now)})
        logger.info(f"[+] Completed league {league.id} '{league.name}'")
        return league.model_copy(update={
            'status': 'completed',
            'completed_at': now,
            'last_evaluated_at': now,
        })

    # =========================================================================
    # READ VIEWS
    # =========================================================================

    def get_league_details(self, league_id: str) -> LeagueDetails:
        league = self._get_league(league_id)
        participants = self._participants(league_id)
        return LeagueDetails(
            league=league,
            challenges=self._league_challenges(league_id),
            participants=participants,
            standings=aggregate_standings(participants, self.get_results(league_id)),
        )

    def list_user_leagues(self, ctx: RequestContext) -> List[League]:
        return [self._to_league(row) for row in self.db.list_leagues_for_user(ctx.user_id)]

    def get_results(self, league_id: str) -> List[ChallengeResult]:
        """Stored results of the last evaluation."""
        self._get_league(league_id)
        return [ChallengeResult(**row) for row in self.db.get_challenge_results(league_id)]

    def get_standings(self, league_id: str) -> List[StandingEntry]:
        """Leaderboard from the last evaluation."""
        return aggregate_standings(self._participants(league_id), self.get_results(league_id))

    # =========================================================================
    # RUNS
    # =========================================================================

    def save_run(self, ctx: RequestContext, run: Run) -> Run:
        """Store (or replace) a run snapshot of the caller."""
        if run.user_id != ctx.user_id:
            raise PermissionDeniedError(
                f"User {ctx.user_id} cannot save run of {run.user_id}",
                "You can only save your own runs."
            )
        existing = self.db.get_run(run.id)
        if existing is not None and existing['user_id'] != ctx.user_id:
            raise PermissionDeniedError(
                f"Run {run.id} belongs to {existing['user_id']}",
                "You can only save your own runs."
            )
        self.db.save_run(run.model_dump(mode='json'))
        return run

    def get_run(self, ctx: RequestContext, run_id: str) -> Run:
        return self._load_owned_run(ctx, run_id, check_version=False)

    def delete_run(self, ctx: RequestContext, run_id: str) -> None:
        """
        Delete a run of the caller.

        Raises:
            LinkConflictError: Run is linked to an active league
        """
        self._load_owned_run(ctx, run_id, check_version=False)

        linked = self.db.find_participants_by_run(run_id)
        completed_slots = []
        for slot in linked:
            league = self.db.get_league(slot['league_id'])
            if league is not None and league['status'] == 'active':
                raise LinkConflictError(run_id, slot['league_id'])
            completed_slots.append(slot)

        for slot in completed_slots:
            self.db.update_participant_run(slot['league_id'], slot['user_id'], None)
        self.db.delete_run(run_id)
        logger.info(f"Deleted run {run_id}")

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _join(self, league: League, user_id: str) -> Participant:
        if not league.is_active():
            raise InactiveLeagueError(league.id)
        if self.db.get_participant(league.id, user_id) is not None:
            raise DuplicateError(league.id, user_id)

        participant = Participant(league_id=league.id, user_id=user_id, joined_at=utc_now())
        try:
            added = self.db.add_participant(self._participant_row(participant), league.max_participants)
        except ConstraintError:
            raise DuplicateError(league.id, user_id)
        if not added:
            raise CapacityError(league.id, league.max_participants)

        self.db.accept_pending_invites(league.id, user_id)
        logger.info(f"User {user_id} joined league {league.id}")
        return participant

    def _validate_challenges(self, selections: List[ChallengeSelection]) -> List[LeagueChallenge]:
        count = len(selections)
        if not config.LEAGUE_MIN_CHALLENGES <= count <= config.LEAGUE_MAX_CHALLENGES:
            raise ValidationError(
                f"{count} challenges selected",
                f"Select between {config.LEAGUE_MIN_CHALLENGES} and "
                f"{config.LEAGUE_MAX_CHALLENGES} challenges."
            )

        ids = [s.id for s in selections]
        if len(set(ids)) != len(ids):
            raise ValidationError("Duplicate challenge ids", "Each challenge can only be selected once.")

        challenges = []
        for selection in selections:
            challenge = get_challenge(selection.id)
            if challenge is None:
                raise ValidationError(
                    f"Unknown challenge {selection.id}",
                    f"Unknown challenge: {selection.id}."
                )
            points = challenge.points if selection.points is None else selection.points
            if points < 1:
                raise ValidationError(
                    f"Challenge {selection.id} has {points} points",
                    "Challenge points must be at least 1."
                )
            challenges.append(LeagueChallenge(challenge_id=challenge.id, points=points))
        return challenges

    @staticmethod
    def _validate_invitees(admin_id: str, invitee_ids: List[str]) -> List[str]:
        invitees = []
        for invitee_id in invitee_ids:
            if invitee_id and invitee_id != admin_id and invitee_id not in invitees:
                invitees.append(invitee_id)

        max_invites = config.LEAGUE_MAX_PARTICIPANTS - 1
        if len(invitees) > max_invites:
            raise ValidationError(
                f"{len(invitees)} invitees",
                f"You can invite at most {max_invites} friends."
            )
        return invitees

    @staticmethod
    def _validate_end_date(end_date: Optional[datetime], now: datetime) -> datetime:
        if end_date is None:
            return now + timedelta(days=config.LEAGUE_DEFAULT_DURATION_DAYS)

        end_date = as_utc(end_date)
        if end_date <= now:
            raise ValidationError(f"End date {end_date} is in the past", "The end date must be in the future.")
        if end_date > now + timedelta(days=config.LEAGUE_MAX_DURATION_DAYS):
            raise ValidationError(
                f"End date {end_date} too far out",
                f"A league can last at most {config.LEAGUE_MAX_DURATION_DAYS} days."
            )
        return end_date

    def _load_owned_run(self, ctx: RequestContext, run_id: str, check_version: bool = True) -> Run:
        row = self.db.get_run(run_id)
        if row is None or row.get('user_id') != ctx.user_id:
            raise NotFoundError(f"Run {run_id} not found for {ctx.user_id}", "Run not found.")
        run = Run(**row)
        if check_version and run.game_version != ctx.game_version:
            raise ValidationError(
                f"Run {run_id} is {run.game_version}, expected {ctx.game_version}",
                f"This run is not a {ctx.game_version} run."
            )
        return run

    def _load_linked_run(self, participant: Participant) -> Optional[Run]:
        if participant.weekly_performance_id is None:
            return None
        row = self.db.get_run(participant.weekly_performance_id)
        if row is None:
            logger.warning(
                f"[!] Run {participant.weekly_performance_id} linked by {participant.user_id} is missing"
            )
            return None
        return Run(**row)

    def _check_run_free(self, run_id: str, exclude_league_id: Optional[str]) -> None:
        """A run may back at most one slot across active leagues."""
        for slot in self.db.find_participants_by_run(run_id):
            if slot['league_id'] == exclude_league_id:
                continue
            league = self.db.get_league(slot['league_id'])
            if league is not None and league['status'] == 'active':
                raise LinkConflictError(run_id, slot['league_id'])

    def _get_league(self, league_id: str) -> League:
        row = self.db.get_league(league_id)
        if row is None:
            raise NotFoundError(f"League {league_id} not found", "League not found.")
        return self._to_league(row)

    def _get_active_league(self, league_id: str) -> League:
        league = self._get_league(league_id)
        if not league.is_active():
            raise InactiveLeagueError(league_id)
        return league

    def _require_admin(self, league: League, user_id: str) -> None:
        if league.admin_user_id != user_id:
            raise PermissionDeniedError(
                f"User {user_id} is not admin of league {league.id}",
                "Only the league admin can do this."
            )

    def _require_participant(self, league_id: str, user_id: str) -> Participant:
        row = self.db.get_participant(league_id, user_id)
        if row is None:
            raise NotFoundError(
                f"User {user_id} is not in league {league_id}",
                "You are not a member of this league."
            )
        return Participant(**row)

    def _participants(self, league_id: str) -> List[Participant]:
        return [Participant(**row) for row in self.db.get_participants(league_id)]

    def _league_challenges(self, league_id: str) -> List[LeagueChallenge]:
        return [LeagueChallenge(**row) for row in self.db.get_league_challenges(league_id)]

    def _generate_code(self) -> str:
        while True:
            code = secrets.token_hex(LEAGUE_CODE_BYTES).upper()
            if self.db.get_league_by_code(code) is None:
                return code

    @staticmethod
    def _normalize_code(code: str) -> str:
        return (code or '').strip().upper()

    @staticmethod
    def _to_league(row: Dict[str, Any]) -> League:
        return League(**row)

    @staticmethod
    def _league_row(league: League) -> Dict[str, Any]:
        row = league.model_dump()
        for key in ('champs_run_end_date', 'created_at', 'completed_at', 'last_evaluated_at'):
            row[key] = to_iso(row[key])
        return row

    @staticmethod
    def _participant_row(participant: Participant) -> Dict[str, Any]:
        row = participant.model_dump()
        row['joined_at'] = to_iso(participant.joined_at)
        return row

    @staticmethod
    def _result_row(result: ChallengeResult) -> Dict[str, Any]:
        row = result.model_dump()
        row['achieved_at'] = to_iso(result.achieved_at)
        return row


# Global service instance
_league_service: Optional[LeagueService] = None


@lru_cache
def get_league_service() -> LeagueService:
    """Get the global league service instance."""
    global _league_service
    if _league_service is None:
        _league_service = LeagueService()
    return _league_service
