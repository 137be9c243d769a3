from clubvote.models.score_ballot import ScoreBallot

__all__ = ["ScoreBallot"]
