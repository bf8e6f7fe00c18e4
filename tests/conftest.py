"""
Shared fixtures for the Parlay Club test suite.
"""

import os
from datetime import datetime, timezone
from types import SimpleNamespace

import pytest

os.environ.setdefault("LOG_TO_FILE", "False")

from parlay_club import create_app, db  # noqa: E402
from parlay_club.models import Game, Pick, User  # noqa: E402
from parlay_club.models.pick import WAGER_SPREAD  # noqa: E402


def utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


# 2024 week 1 / week 2 kickoffs (Pacific time in comments)
THURSDAY_KICKOFF = utc(2024, 9, 6, 0, 20)  # Thu 9/5 17:20
FRIDAY_KICKOFF = utc(2024, 9, 7, 0, 15)  # Fri 9/6 17:15
SUNDAY_KICKOFF = utc(2024, 9, 8, 17, 0)  # Sun 9/8 10:00
WEEK_TWO_THURSDAY_KICKOFF = utc(2024, 9, 13, 0, 15)  # Thu 9/12 17:15


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user(app):
    def _make_user(username, display_name=None):
        user = User(username=username, display_name=display_name)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture
def make_game(app):
    def _make_game(
        kickoff,
        season=2024,
        week=1,
        home_team="KC",
        away_team="BAL",
        spread=-3.0,
        over_under=46.5,
    ):
        game = Game(
            season=season,
            week=week,
            home_team=home_team,
            away_team=away_team,
            kickoff=kickoff,
            spread=spread,
            over_under=over_under,
        )
        db.session.add(game)
        db.session.commit()
        return game

    return _make_game


@pytest.fixture
def make_pick(app):
    def _make_pick(user, game, wager_type=WAGER_SPREAD, side="home", line=None):
        if line is None:
            line = game.spread if wager_type == WAGER_SPREAD else game.over_under
        pick = Pick(
            user_id=user.id,
            game_id=game.id,
            season=game.season,
            week=game.week,
            wager_type=wager_type,
            side=side,
            line=line,
        )
        db.session.add(pick)
        db.session.commit()
        return pick

    return _make_pick


@pytest.fixture
def league(make_user, make_game, make_pick):
    """
    Two users across two weeks of the 2024 season, nothing graded yet.

    Final scores in `finals` give alice 3 points in week 1 (Thursday spread
    and total both win, Friday splits) and 3 in week 2. Bob's only pick loses.
    """
    alice = make_user("alice", "Alice A.")
    bob = make_user("bob")

    thursday = make_game(THURSDAY_KICKOFF, home_team="KC", away_team="BAL")
    friday = make_game(
        FRIDAY_KICKOFF, home_team="PHI", away_team="GB", spread=-2.5, over_under=48.0
    )
    week_two = make_game(
        WEEK_TWO_THURSDAY_KICKOFF,
        week=2,
        home_team="BUF",
        away_team="MIA",
        spread=-2.5,
        over_under=49.5,
    )

    picks = SimpleNamespace(
        alice_thu_spread=make_pick(alice, thursday, "spread", "home"),
        alice_thu_total=make_pick(alice, thursday, "total", "over"),
        alice_fri_spread=make_pick(alice, friday, "spread", "home"),
        alice_fri_total=make_pick(alice, friday, "total", "under"),
        alice_w2_spread=make_pick(alice, week_two, "spread", "home"),
        alice_w2_total=make_pick(alice, week_two, "total", "under"),
        bob_thu_spread=make_pick(bob, thursday, "spread", "away"),
    )

    return SimpleNamespace(
        alice=alice,
        bob=bob,
        thursday=thursday,
        friday=friday,
        week_two=week_two,
        picks=picks,
        finals={
            thursday.id: (27, 20),
            friday.id: (34, 29),
            week_two.id: (31, 10),
        },
    )


@pytest.fixture
def graded_league(league):
    from parlay_club.services.result_reconciler import result_reconciler

    for game_id, (home_score, away_score) in league.finals.items():
        result_reconciler.handle_game_final(game_id, home_score, away_score)
    return league
