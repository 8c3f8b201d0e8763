"""Tests for the league completion scheduler."""

import pytest
import schedule
from datetime import timedelta
from unittest.mock import Mock

from futalyst import config
from futalyst.scheduler import complete_expired, register_jobs, start_background
from futalyst.utils.timeutils import as_utc


class TestCompleteExpired:
    """The completion job."""

    def test_nothing_expired(self, service, league):
        assert complete_expired(service) == 0
        assert service.get_league_details(league.id).league.status == 'active'

    def test_completes_expired_league(self, service, league):
        # Move the end date into the past
        past = as_utc(league.champs_run_end_date) - timedelta(days=10)
        service.db.update_league(league.id, {'champs_run_end_date': past.isoformat()})

        assert complete_expired(service) == 1
        assert service.get_league_details(league.id).league.status == 'completed'

    def test_errors_are_reported_not_raised(self, capsys):
        service = Mock()
        service.complete_expired_leagues.side_effect = RuntimeError('db down')

        assert complete_expired(service) == 0
        assert 'db down' in capsys.readouterr().out


class TestRegisterJobs:
    """Job registration."""

    def test_registers_on_interval(self):
        scheduler = schedule.Scheduler()
        service = Mock()
        service.complete_expired_leagues.return_value = []

        job = register_jobs(scheduler, service=service, minutes=5)

        assert scheduler.jobs == [job]
        assert job.interval == 5
        assert job.unit == 'minutes'

    def test_default_interval(self):
        scheduler = schedule.Scheduler()
        job = register_jobs(scheduler, service=Mock())
        assert job.interval == config.COMPLETION_CHECK_MINUTES

    def test_run_all_invokes_service(self):
        scheduler = schedule.Scheduler()
        service = Mock()
        service.complete_expired_leagues.return_value = ['L1']
        register_jobs(scheduler, service=service, minutes=5)

        scheduler.run_all()

        service.complete_expired_leagues.assert_called_once_with()


class TestBackground:

    def test_start_and_stop(self):
        service = Mock()
        service.complete_expired_leagues.return_value = []

        stop = start_background(service=service, poll_seconds=0.01)
        assert not stop.is_set()
        stop.set()
