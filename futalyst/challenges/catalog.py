"""
Challenge Catalog.

The global, immutable pool of challenges a league can pick from. Bump
CATALOG_VERSION whenever an entry changes meaning, since stored results
refer to challenges by id.
"""

import random
from typing import Dict, List, Optional

from futalyst.models.challenge import Challenge, Condition


CATALOG_VERSION = "2025.1"


CHALLENGE_POOL: List[Challenge] = [
    # --- Offensive (7) ---
    Challenge(id='off_1', name='Most Goals Scored',
              description='Score the most goals in the league.',
              category='Offensive', points=3, evaluation_type='competitive',
              metric='totalGoalsScored'),
    Challenge(id='off_2', name='Highest XG Differential',
              description='Achieve the highest positive Expected Goal Differential in the league.',
              category='Offensive', points=4, evaluation_type='competitive',
              metric='totalXGDiff'),
    Challenge(id='off_3', name='Most Hat-Tricks',
              description='Score the most hat-tricks (3+ goals in a single game) in the league.',
              category='Offensive', points=2, evaluation_type='competitive',
              metric='totalHatTricks'),
    Challenge(id='off_4', name='Most Assists',
              description='Provide the most assists in the league.',
              category='Offensive', points=3, evaluation_type='competitive',
              metric='totalAssists'),
    Challenge(id='off_5', name='Highest Shot Accuracy',
              description='Achieve the highest Shot Accuracy in the league (min 15 games).',
              category='Offensive', points=4, evaluation_type='competitive',
              metric='avgShotAccuracy', min_games=15),
    Challenge(id='off_6', name='Biggest Win Margin',
              description='Achieve the largest goal difference in a single winning game.',
              category='Offensive', points=4, evaluation_type='competitive',
              metric='maxWinMargin'),
    Challenge(id='off_7', name='Most Wins',
              description='Win the most games in the league.',
              category='Offensive', points=5, evaluation_type='competitive',
              metric='totalWins'),

    # --- Defensive (8) ---
    Challenge(id='def_1', name='Most Clean Sheets',
              description='Achieve the most clean sheets (0 goals conceded) in the league.',
              category='Defensive', points=5, evaluation_type='competitive',
              metric='totalCleanSheets'),
    Challenge(id='def_2', name='Fewest Goals Conceded',
              description='Concede the fewest goals over a full Champs run.',
              category='Defensive', points=4, evaluation_type='competitive',
              metric='totalGoalsConceded', direction='asc'),
    Challenge(id='def_3', name='Lowest XG Conceded Per Game',
              description='Have the lowest average Expected Goals Conceded per game (min 10 games).',
              category='Defensive', points=5, evaluation_type='competitive',
              metric='avgXGConceded', min_games=10, direction='asc'),
    Challenge(id='def_4', name='Fewest Fouls Conceded Per Game',
              description='Commit the fewest fouls per game (min 10 games).',
              category='Defensive', points=4, evaluation_type='competitive',
              metric='avgFouls', min_games=10, direction='asc'),
    Challenge(id='def_5', name='Most Goals from Defenders',
              description='Score the most goals using players categorized as Defenders (CB, LB, RB, LWB, RWB).',
              category='Defensive', points=3, evaluation_type='competitive',
              metric='totalDefenderGoals'),
    Challenge(id='def_6', name='Most Consecutive Clean Sheets',
              description='Achieve the longest streak of consecutive clean sheets in the league.',
              category='Defensive', points=4, evaluation_type='competitive',
              metric='maxConsecutiveCleanSheets'),
    Challenge(id='def_7', name='No Red Cards',
              description='Complete the Champs run without receiving any red cards.',
              category='Defensive', points=3, evaluation_type='binary',
              metric='totalRedCards',
              conditions=[Condition(metric='totalRedCards', operator='==', value=0, scope='runTotal')]),
    Challenge(id='def_8', name='Best Disciplinary Record',
              description='Fewest total fouls committed.',
              category='Defensive', points=2, evaluation_type='competitive',
              metric='totalFouls', direction='asc'),

    # --- Technical & Midfield (5) ---
    Challenge(id='tech_1', name='Highest Pass Accuracy',
              description='Achieve the highest Pass Accuracy in the league.',
              category='Technical', points=4, evaluation_type='competitive',
              metric='avgPassAccuracy'),
    Challenge(id='tech_2', name='Highest Average Possession',
              description='Average the highest possession percentage per game.',
              category='Technical', points=3, evaluation_type='competitive',
              metric='avgPossession'),
    Challenge(id='tech_3', name='Most Passes',
              description='Make the most passes in the league.',
              category='Technical', points=3, evaluation_type='competitive',
              metric='totalPasses'),
    Challenge(id='tech_4', name='Most Goals from Midfielders',
              description='Score the most goals using players categorized as Midfielders (CM, CDM, CAM, LM, RM).',
              category='Technical', points=3, evaluation_type='competitive',
              metric='totalMidfielderGoals'),
    Challenge(id='tech_5', name='Highest Average Player Rating',
              description='Achieve the highest average player rating for your squad.',
              category='Technical', points=2, evaluation_type='competitive',
              metric='avgPlayerRating'),

    # --- Match Management & Strategy (5) ---
    Challenge(id='mgmt_1', name='Longest Unbeaten Streak',
              description='Achieve the longest unbeaten streak in the league.',
              category='Management', points=5, evaluation_type='competitive',
              metric='maxUnbeatenStreak'),
    Challenge(id='mgmt_2', name='Most Games Played (No Quits)',
              description='Play the most games in the league without rage quitting.',
              category='Management', points=3, evaluation_type='competitive',
              metric='totalGamesNoQuits'),
    Challenge(id='mgmt_3', name='Most Extra Time Wins',
              description='Win the most games that go to Extra Time.',
              category='Management', points=4, evaluation_type='competitive',
              metric='totalExtraTimeWins'),
    Challenge(id='mgmt_4', name='Most Opponent Rage Quits',
              description='Win the most games by opponent rage quits.',
              category='Management', points=3, evaluation_type='competitive',
              metric='totalOpponentRageQuits'),
    Challenge(id='mgmt_5', name='Fewest Minutes Played',
              description='Play the fewest total minutes across all games.',
              category='Management', points=3, evaluation_type='competitive',
              metric='totalMinutesPlayed', direction='asc'),

    # --- Quirky / Bonus (7) ---
    Challenge(id='quirk_1', name='Most Formations Used in Wins',
              description='Win games using the most *different* formations.',
              category='Bonus', points=4, evaluation_type='competitive',
              metric='totalUniqueWinningFormations'),
    Challenge(id='quirk_2', name='Bronze Baron',
              description='Win a game using 3+ bronze players in your starting XI.',
              category='Bonus', points=3, evaluation_type='binary',
              metric='bronzeStarterWin',
              conditions=[Condition(metric='bronzeStarterWin', operator='==', value=True, scope='singleGame')]),
    Challenge(id='quirk_3', name='Goalie Goal!',
              description='Score a goal with your Goalkeeper.',
              category='Bonus', points=4, evaluation_type='binary',
              metric='goalieGoal',
              conditions=[Condition(metric='goalieGoal', operator='==', value=True, scope='singleGame')]),
    Challenge(id='quirk_4', name='Most Unique Goalscorers',
              description='Score goals with the highest number of different players.',
              category='Bonus', points=3, evaluation_type='competitive',
              metric='totalUniqueGoalscorers'),
    Challenge(id='quirk_5', name='No Subs, No Problem',
              description='Win the most games without making any substitutions.',
              category='Bonus', points=3, evaluation_type='competitive',
              metric='totalWinsNoSubs'),
    Challenge(id='quirk_6', name='Loan Star Performer',
              description='Score 5+ goals with a Loan Player in a single Champs run.',
              category='Bonus', points=2, evaluation_type='binary',
              metric='totalLoanPlayerGoals',
              conditions=[Condition(metric='totalLoanPlayerGoals', operator='>=', value=5, scope='runTotal')]),
    Challenge(id='quirk_7', name='Perfect Game',
              description='Win a game without conceding a single shot on target.',
              category='Bonus', points=4, evaluation_type='binary',
              metric='winZeroShotsOnTargetConceded',
              conditions=[Condition(metric='winZeroShotsOnTargetConceded', operator='==', value=True, scope='singleGame')]),

    # --- First To Achieve (9) ---
    Challenge(id='first_1', name='First to 5 Goals in a Game',
              description='Be the first player in the league to score 5+ goals in a single match.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='goalsInSingleMatch', value=5),
    Challenge(id='first_2', name='First Clean Sheet',
              description='Be the first player in the league to achieve a clean sheet.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='cleanSheet', value=True),
    Challenge(id='first_3', name='First Red Card Received',
              description='Be the first player in the league to receive a red card.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='redCardReceived', value=True),
    Challenge(id='first_4', name='First to 3-0 Win',
              description='Be the first player in the league to win a game by a 3-0 scoreline.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='winBy3_0', value=True),
    Challenge(id='first_5', name='First Golden Goal Win',
              description='Be the first player in the league to win a game by scoring 1 goal.',
              category='First To Achieve', points=5, evaluation_type='firstToAchieve',
              metric='winBy1_0', value=True),
    Challenge(id='first_6', name='First Perfect Pass Accuracy',
              description='Be the first player to achieve 100% Pass Accuracy (min 50 passes) in a single game.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='perfectPassAccuracyGame', value=True, min_passes=50),
    Challenge(id='first_7', name='First Opponent Rage Quit',
              description='Be the first player to have an opponent rage quit.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='opponentRageQuit', value=True),
    Challenge(id='first_8', name='First Goal from Defender',
              description='Be the first player to score a goal with a player categorized as a Defender.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='defenderGoalInGame', value=True),
    Challenge(id='first_9', name='First Penalty Shootout Win',
              description='Be the first player to win a game via a penalty shootout.',
              category='First To Achieve', points=2, evaluation_type='firstToAchieve',
              metric='penaltyShootoutWin', value=True),
]

_BY_ID: Dict[str, Challenge] = {c.id: c for c in CHALLENGE_POOL}


def get_challenge(challenge_id: str) -> Optional[Challenge]:
    """Look up a catalog entry by id."""
    return _BY_ID.get(challenge_id)


def list_challenges(category: Optional[str] = None) -> List[Challenge]:
    """All catalog entries, optionally filtered by category."""
    if category is None:
        return list(CHALLENGE_POOL)
    return [c for c in CHALLENGE_POOL if c.category == category]


def random_selection(count: int = 25, rng: Optional[random.Random] = None) -> List[str]:
    """Pick ``count`` distinct challenge ids at random."""
    if count < 0 or count > len(CHALLENGE_POOL):
        raise ValueError(f"count must be between 0 and {len(CHALLENGE_POOL)}, got {count}")
    rng = rng or random.Random()
    return [c.id for c in rng.sample(CHALLENGE_POOL, count)]
