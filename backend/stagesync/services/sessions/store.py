"""
Durable session store.

One ``timer_session`` row per room. Transitions run while holding the room
row with ``SELECT ... FOR UPDATE``, so writers on the same room queue up across
workers. Writes replace the session row in place with a single conditional
UPDATE on ``(room_id, seq)``; the first write for a room inserts it, and the
unique ``room_id`` turns a racing insert into a conflict. Databases without row
locks (SQLite) rely on that check alone.
"""
import logging
from contextlib import contextmanager
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from stagesync import db
from stagesync.errors import Conflict, NotFound, StoreUnavailable
from stagesync.models import Room, Timer, TimerSession
from stagesync.timing import SessionSnapshot

logger = logging.getLogger(__name__)


def _get(model, ident, label):
    try:
        obj = db.session.get(model, ident)
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f"Loading {label} {ident} failed: {exc}", exc_info=True)
        raise StoreUnavailable('Session store unavailable') from exc
    if obj is None:
        raise NotFound(f'{label.capitalize()} {ident} not found')
    return obj


def load_timer(timer_id: int) -> Timer:
    return _get(Timer, timer_id, 'timer')


def load_room(room_id: int) -> Room:
    return _get(Room, room_id, 'room')


def room_lock_query(room_id: int):
    return Room.query.filter_by(id=room_id).with_for_update(nowait=False)


@contextmanager
def room_lock(room_id: int):
    """Hold the room row locked until the block ends.

    Writes inside the block commit as usual; whatever transaction is still
    open on exit is rolled back, which also releases the lock on early returns
    and errors.
    """
    try:
        room = room_lock_query(room_id).first()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f"Locking room {room_id} failed: {exc}", exc_info=True)
        raise StoreUnavailable('Session store unavailable') from exc
    if room is None:
        db.session.rollback()
        raise NotFound(f'Room {room_id} not found')
    try:
        yield room
    finally:
        db.session.rollback()


def load_session(room_id: int) -> Optional[SessionSnapshot]:
    """Current session of a room, read fresh from the database."""
    try:
        row = (
            TimerSession.query
            .filter_by(room_id=room_id)
            .populate_existing()
            .first()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f"Loading session for room {room_id} failed: {exc}", exc_info=True)
        raise StoreUnavailable('Session store unavailable') from exc
    return row.to_snapshot() if row else None


def save_session(room_id: int, snapshot: SessionSnapshot, expected_seq: Optional[int]) -> SessionSnapshot:
    """Persist ``snapshot`` as the room's session if nobody wrote since ``expected_seq``.

    ``expected_seq=None`` means the room had no session row. Returns the
    snapshot carrying its new ``seq``.
    """
    new_seq = 1 if expected_seq is None else expected_seq + 1
    values = {
        'timer_id': snapshot.timer_id,
        'kickoff': snapshot.kickoff,
        'deadline': snapshot.deadline,
        'last_stop': snapshot.last_stop,
        'status': snapshot.status,
        'seq': new_seq,
    }
    try:
        if expected_seq is None:
            db.session.add(TimerSession(room_id=room_id, **values))
        else:
            updated = (
                TimerSession.query
                .filter_by(room_id=room_id, seq=expected_seq)
                .update(values, synchronize_session=False)
            )
            if not updated:
                db.session.rollback()
                logger.warning(f"Session write for room {room_id} lost the race at seq={expected_seq}")
                raise Conflict(f'Session for room {room_id} changed concurrently')
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning(f"Session insert for room {room_id} collided: {exc}")
        raise Conflict(f'Session for room {room_id} changed concurrently') from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f"Saving session for room {room_id} failed: {exc}", exc_info=True)
        raise StoreUnavailable('Session store unavailable') from exc
    return snapshot.evolve(seq=new_seq)


def bump_sequence(room_id: int) -> Optional[int]:
    """Advance a room's logical clock without touching its session fields.

    Returns the new ``seq``, or ``None`` when the room has no session yet.
    """
    try:
        updated = (
            TimerSession.query
            .filter_by(room_id=room_id)
            .update({'seq': TimerSession.seq + 1}, synchronize_session=False)
        )
        db.session.commit()
        if not updated:
            return None
        return db.session.query(TimerSession.seq).filter_by(room_id=room_id).scalar()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(f"Advancing seq for room {room_id} failed: {exc}", exc_info=True)
        raise StoreUnavailable('Session store unavailable') from exc
