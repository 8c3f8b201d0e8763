"""Tests for the league service (lifecycle and run linkage)."""

import pytest
from datetime import timedelta

from futalyst import config
from futalyst.errors import (
    CapacityError,
    DuplicateError,
    InactiveLeagueError,
    LinkConflictError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from futalyst.models import ChallengeSelection, RequestContext
from futalyst.utils.timeutils import as_utc, utc_now


def _ctx(user_id, game_version='FC25'):
    return RequestContext(user_id=user_id, game_version=game_version)


class TestCreateLeague:
    """League creation rules."""

    def test_create_defaults(self, service, admin_ctx, admin_run, selections):
        details = service.create_league(
            admin_ctx, 'Weekend League', None, admin_run.id, selections, ['bob', 'carol']
        )
        league = details.league

        assert league.status == 'active'
        assert league.admin_user_id == 'alice'
        assert league.game_version == 'FC25'
        assert len(league.league_code) == 8
        assert len(details.challenges) == 25
        assert details.participants[0].weekly_performance_id == admin_run.id

        days = (as_utc(league.champs_run_end_date) - utc_now()).total_seconds() / 86400
        assert config.LEAGUE_DEFAULT_DURATION_DAYS - 0.01 < days <= config.LEAGUE_DEFAULT_DURATION_DAYS

        assert [i.league_id for i in service.list_invites(_ctx('bob'))] == [league.id]

    def test_persisted(self, service, league):
        details = service.get_league_details(league.id)
        assert details.league.name == 'Weekend League'
        assert len(details.challenges) == 25
        assert [p.user_id for p in details.participants] == ['alice']

    def test_custom_points(self, service, admin_ctx, admin_run, selections):
        selections[0] = ChallengeSelection(id=selections[0].id, points=10)
        details = service.create_league(admin_ctx, 'Custom', None, admin_run.id, selections)
        assert details.challenges[0].points == 10
        assert details.challenges[1].points > 0

    @pytest.mark.parametrize('count', [24, 31])
    def test_challenge_count_bounds(self, service, admin_ctx, admin_run, count):
        from futalyst.challenges import CHALLENGE_POOL
        selections = [ChallengeSelection(id=c.id) for c in CHALLENGE_POOL[:count]]
        with pytest.raises(ValidationError):
            service.create_league(admin_ctx, 'Bad Count', None, admin_run.id, selections)

    def test_duplicate_challenges(self, service, admin_ctx, admin_run, selections):
        selections[-1] = selections[0]
        with pytest.raises(ValidationError):
            service.create_league(admin_ctx, 'Dupes', None, admin_run.id, selections)

    def test_unknown_challenge(self, service, admin_ctx, admin_run, selections):
        selections[0] = ChallengeSelection(id='made_up')
        with pytest.raises(ValidationError):
            service.create_league(admin_ctx, 'Unknown', None, admin_run.id, selections)

    def test_non_positive_points(self, service, admin_ctx, admin_run, selections):
        selections[0] = ChallengeSelection(id=selections[0].id, points=0)
        with pytest.raises(ValidationError):
            service.create_league(admin_ctx, 'Zero', None, admin_run.id, selections)

    @pytest.mark.parametrize('name', ['ab', 'x' * 51, '   '])
    def test_name_length(self, service, admin_ctx, admin_run, selections, name):
        with pytest.raises(ValidationError):
            service.create_league(admin_ctx, name, None, admin_run.id, selections)

    def test_too_many_invitees(self, service, admin_ctx, admin_run, selections):
        invitees = [f'friend{i}' for i in range(20)]
        with pytest.raises(ValidationError):
            service.create_league(admin_ctx, 'Crowded', None, admin_run.id, selections, invitees)

    def test_invitees_deduplicated_and_admin_dropped(self, service, admin_ctx, admin_run, selections):
        invitees = ['alice'] + ['bob'] * 5 + [f'friend{i}' for i in range(18)]
        service.create_league(admin_ctx, 'Deduped', None, admin_run.id, selections, invitees)
        assert len(service.list_invites(_ctx('bob'))) == 1
        assert service.list_invites(admin_ctx) == []

    def test_end_date_in_past(self, service, admin_ctx, admin_run, selections):
        with pytest.raises(ValidationError):
            service.create_league(
                admin_ctx, 'Past', utc_now() - timedelta(hours=1), admin_run.id, selections
            )

    def test_end_date_too_far(self, service, admin_ctx, admin_run, selections):
        end = utc_now() + timedelta(days=config.LEAGUE_MAX_DURATION_DAYS, hours=1)
        with pytest.raises(ValidationError):
            service.create_league(admin_ctx, 'Forever', end, admin_run.id, selections)

    def test_explicit_end_date(self, service, admin_ctx, admin_run, selections):
        end = utc_now() + timedelta(days=7)
        league = service.create_league(admin_ctx, 'Week', end, admin_run.id, selections).league
        assert as_utc(league.champs_run_end_date) == end

    def test_admin_run_must_be_owned(self, service, admin_ctx, friend_run, selections):
        with pytest.raises(NotFoundError):
            service.create_league(admin_ctx, 'Stolen Run', None, friend_run.id, selections)

    def test_admin_run_game_version(self, service, admin_run, selections):
        with pytest.raises(ValidationError):
            service.create_league(_ctx('alice', 'FC24'), 'Old', None, admin_run.id, selections)

    def test_admin_run_already_in_active_league(self, service, admin_ctx, admin_run, league, selections):
        with pytest.raises(LinkConflictError):
            service.create_league(admin_ctx, 'Second', None, admin_run.id, selections)


class TestJoinLeague:
    """Joining by code and by invite."""

    def test_join_by_code(self, service, league, friend_ctx):
        participant = service.join_league(friend_ctx, league.league_code.lower())

        assert participant.user_id == 'bob'
        assert participant.weekly_performance_id is None
        assert [p.user_id for p in service.get_league_details(league.id).participants] == ['alice', 'bob']

    def test_join_accepts_pending_invite(self, service, league, friend_ctx):
        invite = service.list_invites(friend_ctx)[0]
        service.join_league(friend_ctx, league.league_code)

        assert service.list_invites(friend_ctx) == []
        assert service.db.get_invite(invite.id)['status'] == 'accepted'

    def test_unknown_code(self, service, friend_ctx):
        with pytest.raises(NotFoundError):
            service.join_league(friend_ctx, 'NOPE0000')

    def test_join_twice(self, service, league, friend_ctx):
        service.join_league(friend_ctx, league.league_code)
        with pytest.raises(DuplicateError):
            service.join_league(friend_ctx, league.league_code)

    def test_full_league(self, service, league):
        for i in range(league.max_participants - 1):
            service.join_league(_ctx(f'friend{i}'), league.league_code)

        with pytest.raises(CapacityError):
            service.join_league(_ctx('one_too_many'), league.league_code)
        assert len(service.get_league_details(league.id).participants) == league.max_participants

    def test_join_completed_league(self, service, league, admin_ctx, friend_ctx):
        service.complete_league(admin_ctx, league.id)
        with pytest.raises(InactiveLeagueError):
            service.join_league(friend_ctx, league.league_code)

    def test_preview(self, service, league):
        preview = service.preview_league(league.league_code)
        assert preview.league_id == league.id
        assert preview.participant_count == 1
        assert preview.max_participants == 20


class TestInvites:
    """Accepting and declining invites."""

    def test_accept(self, service, league, friend_ctx):
        invite = service.list_invites(friend_ctx)[0]
        updated = service.respond_to_invite(friend_ctx, invite.id, accept=True)

        assert updated.status == 'accepted'
        assert service.db.get_participant(league.id, 'bob') is not None

    def test_decline(self, service, league, friend_ctx):
        invite = service.list_invites(friend_ctx)[0]
        updated = service.respond_to_invite(friend_ctx, invite.id, accept=False)

        assert updated.status == 'declined'
        assert service.db.get_participant(league.id, 'bob') is None

    def test_respond_twice(self, service, league, friend_ctx):
        invite = service.list_invites(friend_ctx)[0]
        service.respond_to_invite(friend_ctx, invite.id, accept=False)
        with pytest.raises(ValidationError):
            service.respond_to_invite(friend_ctx, invite.id, accept=True)

    def test_someone_elses_invite(self, service, league, friend_ctx):
        invite = service.list_invites(friend_ctx)[0]
        with pytest.raises(NotFoundError):
            service.respond_to_invite(_ctx('mallory'), invite.id, accept=True)


class TestLinkRun:
    """Linking runs to participant slots."""

    def test_link_and_unlink(self, service, league, friend_ctx, friend_run):
        service.join_league(friend_ctx, league.league_code)

        participant = service.link_run(friend_ctx, league.id, friend_run.id)
        assert participant.weekly_performance_id == friend_run.id
        assert service.db.get_participant(league.id, 'bob')['weekly_performance_id'] == friend_run.id

        participant = service.link_run(friend_ctx, league.id, None)
        assert participant.weekly_performance_id is None

    def test_relink_same_run_is_noop(self, service, league, admin_ctx, admin_run):
        participant = service.link_run(admin_ctx, league.id, admin_run.id)
        assert participant.weekly_performance_id == admin_run.id

    def test_link_someone_elses_run(self, service, league, friend_ctx, admin_run):
        service.join_league(friend_ctx, league.league_code)
        with pytest.raises(NotFoundError):
            service.link_run(friend_ctx, league.id, admin_run.id)

    def test_link_requires_membership(self, service, league, friend_ctx, friend_run):
        with pytest.raises(NotFoundError):
            service.link_run(friend_ctx, league.id, friend_run.id)

    def test_link_wrong_game_version(self, service, league, friend_ctx, make_run, make_game):
        old = service.save_run(friend_ctx, make_run('old', 'bob', [make_game(1)], game_version='FC24'))
        service.join_league(friend_ctx, league.league_code)
        with pytest.raises(ValidationError):
            service.link_run(_ctx('bob', 'FC24'), league.id, old.id)

    def test_run_in_one_active_league_only(self, service, league, friend_ctx, friend_run, selections):
        service.join_league(friend_ctx, league.league_code)
        service.link_run(friend_ctx, league.id, friend_run.id)

        other_run = service.save_run(friend_ctx, friend_run.model_copy(update={'id': 'run_bob_2'}))
        other = service.create_league(friend_ctx, 'Bob League', None, other_run.id, selections).league
        with pytest.raises(LinkConflictError):
            service.link_run(friend_ctx, other.id, friend_run.id)

    def test_run_from_completed_league_can_be_reused(
        self, service, league, admin_ctx, admin_run, selections
    ):
        service.complete_league(admin_ctx, league.id)
        details = service.create_league(admin_ctx, 'Rematch', None, admin_run.id, selections)
        assert details.participants[0].weekly_performance_id == admin_run.id

    def test_link_in_completed_league(self, service, league, admin_ctx, admin_run):
        service.complete_league(admin_ctx, league.id)
        with pytest.raises(InactiveLeagueError):
            service.link_run(admin_ctx, league.id, None)


class TestLeaveAndDelete:
    """Leaving and deleting leagues."""

    def test_leave(self, service, league, friend_ctx):
        service.join_league(friend_ctx, league.league_code)
        service.evaluate_league(league.id)
        service.leave_league(friend_ctx, league.id)

        assert service.db.get_participant(league.id, 'bob') is None
        assert all(r.user_id != 'bob' for r in service.get_results(league.id))

    def test_admin_cannot_leave(self, service, league, admin_ctx):
        with pytest.raises(PermissionDeniedError):
            service.leave_league(admin_ctx, league.id)

    def test_leave_when_not_member(self, service, league, friend_ctx):
        with pytest.raises(NotFoundError):
            service.leave_league(friend_ctx, league.id)

    def test_delete_admin_only(self, service, league, friend_ctx, admin_ctx):
        with pytest.raises(PermissionDeniedError):
            service.delete_league(friend_ctx, league.id)

        service.delete_league(admin_ctx, league.id)
        with pytest.raises(NotFoundError):
            service.get_league_details(league.id)


class TestEvaluation:
    """Evaluation and completion."""

    def test_evaluate_writes_results_for_every_pair(self, service, league, friend_ctx, friend_run):
        service.join_league(friend_ctx, league.league_code)
        service.link_run(friend_ctx, league.id, friend_run.id)

        standings = service.evaluate_league(league.id)

        results = service.get_results(league.id)
        assert len(results) == 25 * 2
        assert {s.user_id for s in standings} == {'alice', 'bob'}
        assert service.get_league_details(league.id).league.last_evaluated_at is not None

    def test_evaluate_is_idempotent(self, service, league, friend_ctx, friend_run):
        service.join_league(friend_ctx, league.league_code)
        service.link_run(friend_ctx, league.id, friend_run.id)

        first = service.evaluate_league(league.id)
        first_results = service.get_results(league.id)
        second = service.evaluate_league(league.id)

        assert first == second
        assert first_results == service.get_results(league.id)
        assert service.get_standings(league.id) == second

    def test_unlinked_participant_scores_nothing(self, service, league, friend_ctx):
        service.join_league(friend_ctx, league.league_code)
        service.evaluate_league(league.id)

        bob_points = sum(r.points_awarded for r in service.get_results(league.id) if r.user_id == 'bob')
        assert bob_points == 0

    def test_evaluate_missing_league(self, service):
        with pytest.raises(NotFoundError):
            service.evaluate_league('nope')

    def test_complete_admin_only(self, service, league, friend_ctx):
        with pytest.raises(PermissionDeniedError):
            service.complete_league(friend_ctx, league.id)

    def test_complete_freezes(self, service, league, admin_ctx):
        completed = service.complete_league(admin_ctx, league.id)

        assert completed.status == 'completed'
        assert completed.completed_at is not None
        assert len(service.get_results(league.id)) == 25

        with pytest.raises(InactiveLeagueError):
            service.evaluate_league(league.id)
        with pytest.raises(InactiveLeagueError):
            service.complete_league(admin_ctx, league.id)

    def test_complete_expired_leagues(self, service, league):
        later = as_utc(league.champs_run_end_date) + timedelta(minutes=1)

        assert service.complete_expired_leagues(now=utc_now()) == []
        assert service.complete_expired_leagues(now=later) == [league.id]
        assert service.get_league_details(league.id).league.status == 'completed'
        assert service.complete_expired_leagues(now=later) == []

    def test_unreadable_run_does_not_block_other_leagues(self, service, db_fixture, make_run):
        service.save_run(_ctx('A'), make_run('run_a', 'A', []))
        service.save_run(_ctx('B'), make_run('run_b', 'B', []))
        with db_fixture.transaction() as conn:
            conn.execute(
                "UPDATE league_runs SET data = ? WHERE id = ?",
                ('{"id": "run_a", "user_id": "A"}', 'run_a')
            )

        for league_id, admin, run_id, end in (
            ('broken', 'A', 'run_a', '2025-03-01T00:00:00+00:00'),
            ('healthy', 'B', 'run_b', '2025-03-02T00:00:00+00:00'),
        ):
            db_fixture.create_league(
                league={
                    'id': league_id, 'name': league_id, 'admin_user_id': admin,
                    'league_code': league_id.upper(), 'max_participants': 20,
                    'champs_run_end_date': end, 'status': 'active', 'game_version': 'FC25',
                },
                challenges=[{'challenge_id': 'off_1', 'points': 3}],
                admin_participant={'league_id': league_id, 'user_id': admin,
                                   'weekly_performance_id': run_id,
                                   'joined_at': '2025-02-28T00:00:00+00:00'},
                invites=[],
            )

        completed = service.complete_expired_leagues(now=utc_now())

        assert completed == ['healthy']
        assert service.get_league_details('healthy').league.status == 'completed'
        assert service.get_league_details('broken').league.status == 'active'


class TestTwoPlayerLeague:
    """A two-challenge league scored end to end."""

    def test_scenario(self, service, db_fixture, make_run, make_game):
        a, b = _ctx('A'), _ctx('B')
        service.save_run(a, make_run('run_a', 'A', [make_game(1, user_goals=5)]))
        service.save_run(b, make_run('run_b', 'B', [make_game(1, user_goals=8, red_cards=1)]))

        # Written directly: the creation rules require at least 25 challenges
        db_fixture.create_league(
            league={
                'id': 'L', 'name': 'Scenario', 'admin_user_id': 'A', 'league_code': 'SCENARIO',
                'max_participants': 20, 'champs_run_end_date': '2099-01-01T00:00:00+00:00',
                'status': 'active', 'game_version': 'FC25',
            },
            challenges=[{'challenge_id': 'def_7', 'points': 3}, {'challenge_id': 'off_1', 'points': 3}],
            admin_participant={'league_id': 'L', 'user_id': 'A', 'weekly_performance_id': 'run_a',
                               'joined_at': '2025-03-01T00:00:00+00:00'},
            invites=[],
        )
        service.join_league(b, 'SCENARIO')
        service.link_run(b, 'L', 'run_b')

        standings = service.evaluate_league('L')

        points = {(r.challenge_id, r.user_id): r.points_awarded for r in service.get_results('L')}
        assert points == {
            ('def_7', 'A'): 3, ('def_7', 'B'): 0,
            ('off_1', 'A'): 0, ('off_1', 'B'): 3,
        }
        assert [(s.user_id, s.total_points, s.rank) for s in standings] == [('A', 3, 1), ('B', 3, 1)]


class TestRuns:
    """Run snapshots and deletion guard."""

    def test_save_for_someone_else(self, service, admin_ctx, make_run, make_game):
        with pytest.raises(PermissionDeniedError):
            service.save_run(admin_ctx, make_run('x', 'bob', [make_game(1)]))

    def test_overwrite_someone_elses_run(self, service, friend_run, make_run, make_game):
        with pytest.raises(PermissionDeniedError):
            service.save_run(_ctx('alice'), make_run(friend_run.id, 'alice', [make_game(1)]))

    def test_get_run(self, service, admin_ctx, admin_run, friend_ctx):
        assert service.get_run(admin_ctx, admin_run.id) == admin_run
        with pytest.raises(NotFoundError):
            service.get_run(friend_ctx, admin_run.id)

    def test_delete_linked_to_active_league(self, service, league, admin_ctx, admin_run):
        with pytest.raises(LinkConflictError) as exc_info:
            service.delete_run(admin_ctx, admin_run.id)
        assert exc_info.value.league_id == league.id

    def test_delete_after_unlink(self, service, league, admin_ctx, admin_run):
        service.link_run(admin_ctx, league.id, None)
        service.delete_run(admin_ctx, admin_run.id)
        with pytest.raises(NotFoundError):
            service.get_run(admin_ctx, admin_run.id)

    def test_delete_after_completion_clears_link(self, service, league, admin_ctx, admin_run):
        service.complete_league(admin_ctx, league.id)
        service.delete_run(admin_ctx, admin_run.id)

        assert service.db.get_participant(league.id, 'alice')['weekly_performance_id'] is None

    def test_list_user_leagues(self, service, league, admin_ctx, friend_ctx):
        assert [l.id for l in service.list_user_leagues(admin_ctx)] == [league.id]
        assert service.list_user_leagues(friend_ctx) == []
