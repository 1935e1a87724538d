import logging
from typing import Sequence

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from errors import DuplicateGame, PersistenceFailure
from models import Game, Mint, Round, User, utcnow

logger = logging.getLogger(__name__)


def _store_message(exc) -> str:
    return str(getattr(exc, "orig", None) or exc).splitlines()[0]


class ScoreStore:
    """Writes verified games.

    Each step commits on its own: a failed round insert leaves the game row
    in place, the game row is the authoritative record.
    """

    def __init__(self, session_factory):
        self.session_factory = session_factory

    def record_game(
        self,
        game_id: str,
        wallet: str,
        score: int,
        tx_hash: str,
        chain_id: int,
        mint_status: str,
        rounds: Sequence = (),
        profile=None,
    ) -> None:
        canonical_user_id = wallet.lower()
        tx_hash = tx_hash.lower()
        db = self.session_factory()
        try:
            self._check_not_recorded(db, game_id, tx_hash)
            self._upsert_user(db, canonical_user_id, profile)
            self._insert_game(db, game_id, canonical_user_id, score)
            if rounds:
                self._insert_rounds(db, game_id, rounds)
            self._insert_mint(db, game_id, tx_hash, chain_id, mint_status)
        finally:
            db.close()

        logger.info("Recorded game %s for %s (score=%s, mint=%s)", game_id, canonical_user_id, score, mint_status)

    def _check_not_recorded(self, db, game_id: str, tx_hash: str) -> None:
        # One mint transaction backs exactly one game
        if db.get(Game, game_id) is not None:
            raise DuplicateGame(f"Game {game_id} has already been recorded.")
        if db.query(Mint).filter(Mint.tx_hash == tx_hash).first() is not None:
            raise DuplicateGame(f"Transaction {tx_hash} has already been used for another game.")

    def _upsert_user(self, db, canonical_user_id: str, profile) -> None:
        try:
            user = db.get(User, canonical_user_id)
            if user is None:
                user = User(canonical_user_id=canonical_user_id, wallet=canonical_user_id)
                db.add(user)
            if profile is not None:
                user.farcaster_fid = profile.fid
                user.display_name = profile.display_name or profile.username
                user.avatar_url = profile.pfp_url
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceFailure(f"Failed to save user: {_store_message(exc)}") from exc

    def _insert_game(self, db, game_id: str, canonical_user_id: str, score: int) -> None:
        db.add(Game(
            id=game_id,
            canonical_user_id=canonical_user_id,
            total_score=int(score),
            ended_at=utcnow(),
        ))
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateGame(f"Game {game_id} has already been recorded.") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceFailure(f"Failed to save game: {_store_message(exc)}") from exc

    def _insert_rounds(self, db, game_id: str, rounds: Sequence) -> None:
        answered_at = utcnow()
        for index, r in enumerate(rounds, start=1):
            delta = r.delta
            if delta is None and r.year_guess is not None and r.year_true is not None:
                delta = abs(r.year_true - r.year_guess)
            db.add(Round(
                game_id=game_id,
                photo_id=r.photo_id,
                round_index=index,
                year_guess=r.year_guess,
                year_true=r.year_true,
                delta_years=delta,
                score=r.score,
                answered_at=answered_at,
            ))
        try:
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            # Round stats are supplementary; keep the game
            logger.exception("Failed to insert rounds for game %s", game_id)

    def _insert_mint(self, db, game_id: str, tx_hash: str, chain_id: int, status: str) -> None:
        db.add(Mint(game_id=game_id, tx_hash=tx_hash, chain_id=chain_id, status=status))
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise DuplicateGame(f"Transaction {tx_hash} has already been used for another game.") from exc
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceFailure(f"Failed to save mint: {_store_message(exc)}") from exc
