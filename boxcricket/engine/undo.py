"""
Single-step undo of the most recent delivery.

Undo is the algebraic inverse of InningsEngine.apply_ball for the tail of the
ledger only. It does not replay the innings, so strike rotation and the
bowler cleared at the end of an over are left as they are: the scorer resets
the crease and the bowler by hand after undoing across those points.
"""
from boxcricket.engine.innings import BALLS_PER_OVER, InningsEngine, UndoResult
from boxcricket.engine.performance import apply_to_performances
from boxcricket.errors import ValidationError
from boxcricket.models.match import InningsStatus


def undo_last_ball(engine: InningsEngine) -> UndoResult:
    innings = engine.innings
    if len(innings.ledger) == 0:
        raise ValidationError("No balls to undo")

    ball = innings.ledger.pop_last()

    innings.total_runs -= ball.total_runs

    if ball.is_legal_delivery:
        innings.total_balls -= 1
        if innings.current_ball == 0:
            # Borrow back the over this ball completed
            innings.current_over -= 1
            innings.total_overs -= 1
            innings.current_ball = BALLS_PER_OVER - 1
        else:
            innings.current_ball -= 1

    if ball.is_wicket:
        innings.total_wickets -= 1
        innings.fall_of_wickets.pop()

    innings.extras.add(ball.outcome, ball.extra_runs, sign=-1)
    apply_to_performances(engine.performances, ball, sign=-1)
    innings.run_rate = innings.compute_run_rate()

    reopened = False
    if innings.status == InningsStatus.COMPLETED and not engine.is_complete():
        innings.status = InningsStatus.IN_PROGRESS
        innings.end_time = None
        reopened = True

    engine.check_invariants()
    return UndoResult(ball=ball, innings_reopened=reopened)
