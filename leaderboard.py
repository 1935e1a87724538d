from sqlalchemy import func

from models import Game, Photo, Round, User

TOP_SCORE = "top_score"
BEST_ACCURACY = "best_accuracy"
DEFAULT_LIMIT = 10
MAX_LIMIT = 50


def clamp_limit(limit) -> int:
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        return DEFAULT_LIMIT
    if limit <= 0:
        return DEFAULT_LIMIT
    return min(limit, MAX_LIMIT)


def get_leaderboard(db, board_type: str = TOP_SCORE, limit: int = DEFAULT_LIMIT):
    """Ranked rows per user: best game score, or lowest mean year error."""
    limit = clamp_limit(limit)
    best_score = func.max(Game.total_score).label("score")

    if board_type == BEST_ACCURACY:
        avg_delta = func.avg(Round.delta_years).label("avg_delta")
        rows = (
            db.query(User.canonical_user_id, User.display_name, User.avatar_url, avg_delta, best_score)
            .join(Game, Game.canonical_user_id == User.canonical_user_id)
            .join(Round, Round.game_id == Game.id)
            .filter(Round.delta_years.isnot(None))
            .group_by(User.canonical_user_id, User.display_name, User.avatar_url)
            .order_by(avg_delta.asc())
            .limit(limit)
            .all()
        )
        return [
            {
                "canonical_user_id": r.canonical_user_id,
                "display_name": r.display_name,
                "avatar_url": r.avatar_url,
                "avg_delta": round(float(r.avg_delta), 2),
                "score": r.score,
            }
            for r in rows
        ]

    rows = (
        db.query(User.canonical_user_id, User.display_name, User.avatar_url, best_score)
        .join(Game, Game.canonical_user_id == User.canonical_user_id)
        .group_by(User.canonical_user_id, User.display_name, User.avatar_url)
        .order_by(best_score.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "canonical_user_id": r.canonical_user_id,
            "display_name": r.display_name,
            "avatar_url": r.avatar_url,
            "score": r.score,
        }
        for r in rows
    ]


def list_photos(db):
    return db.query(Photo).order_by(Photo.id).all()
