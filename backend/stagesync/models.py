from stagesync import db
from stagesync.timing import Appearance, SessionSnapshot, Status, TimerConfig


class Room(db.Model):
    """Synchronization scope. Managed by the room CRUD layer."""
    __tablename__ = 'room'
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(64), unique=True, nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False)
    timers = db.relationship('Timer', back_populates='room', order_by='Timer.index')

    def to_dict(self):
        return {
            'id': self.id,
            'slug': self.slug,
            'name': self.name,
        }


class Timer(db.Model):
    __tablename__ = 'timer'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, index=True)
    name = db.Column(db.String(128), nullable=False, default='')
    appearance = db.Column(db.String(16), nullable=False, default=Appearance.COUNTDOWN)
    duration_ms = db.Column(db.Integer, nullable=False)
    yellow_warning_ms = db.Column(db.Integer, default=60000)
    red_warning_ms = db.Column(db.Integer, default=30000)
    index = db.Column(db.Integer, nullable=False, default=0)
    room = db.relationship('Room', back_populates='timers')

    def to_config(self):
        return TimerConfig(
            id=self.id,
            room_id=self.room_id,
            name=self.name or '',
            duration_ms=int(self.duration_ms),
            appearance=self.appearance or Appearance.COUNTDOWN,
            yellow_warning_ms=self.yellow_warning_ms,
            red_warning_ms=self.red_warning_ms,
        )


class TimerSession(db.Model):
    """The one authoritative session of a room.

    ``seq`` is bumped on every write and compared on update, so two writers
    racing on the same room cannot both win.
    """
    __tablename__ = 'timer_session'
    id = db.Column(db.Integer, primary_key=True)
    room_id = db.Column(db.Integer, db.ForeignKey('room.id'), nullable=False, unique=True, index=True)
    timer_id = db.Column(db.Integer, db.ForeignKey('timer.id'), nullable=False)
    kickoff = db.Column(db.BigInteger, nullable=True)
    deadline = db.Column(db.BigInteger, nullable=True)
    last_stop = db.Column(db.BigInteger, nullable=True)
    status = db.Column(db.String(16), nullable=False, default=Status.STOPPED)
    seq = db.Column(db.Integer, nullable=False, default=0)

    def to_snapshot(self):
        return SessionSnapshot(
            timer_id=self.timer_id,
            kickoff=self.kickoff,
            deadline=self.deadline,
            last_stop=self.last_stop,
            status=self.status,
            seq=self.seq,
        )
