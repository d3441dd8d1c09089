from app import db, bcrypt
from flask_login import UserMixin
import time


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    xp = db.Column(db.Integer, default=0, nullable=False)
    level = db.Column(db.Integer, default=1, nullable=False)
    balance = db.Column(db.Integer, default=0, nullable=False)
    last_attendance_date = db.Column(db.String(10), nullable=True)  # YYYY-MM-DD, KST
    stones = db.relationship('Stone', backref='owner', lazy='dynamic')

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
            'xp': self.xp or 0,
            'level': self.level or 1,
            'balance': self.balance or 0,
        }


class SharedEntry(db.Model):
    """One key of a user's shared tab storage (e.g. the leader slot)."""
    __tablename__ = 'shared_entry'
    __table_args__ = (db.UniqueConstraint('scope', 'key', name='uq_shared_entry_scope_key'),)
    id = db.Column(db.Integer, primary_key=True)
    scope = db.Column(db.String(64), nullable=False, index=True)  # e.g. "user:42"
    key = db.Column(db.String(128), nullable=False)
    value = db.Column(db.Text, nullable=False)
    updated_at = db.Column(db.Float, default=time.time, onupdate=time.time)


class Stone(db.Model):
    __tablename__ = 'stone'
    id = db.Column(db.String(36), primary_key=True)  # client-generated uuid
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    type = db.Column(db.String(32), nullable=False)
    name = db.Column(db.String(64), nullable=False)
    size = db.Column(db.Integer, default=1, nullable=False)
    total_elapsed = db.Column(db.Integer, default=0, nullable=False)  # seconds grown
    is_current = db.Column(db.Boolean, default=True, nullable=False)
    discovered_at = db.Column(db.Float, default=time.time)
    updated_at = db.Column(db.Float, default=time.time, onupdate=time.time)

    def to_dict(self):
        return {
            'id': self.id,
            'type': self.type,
            'name': self.name,
            'size': self.size,
            'total_elapsed': self.total_elapsed,
            'is_current': self.is_current,
            'discovered_at': self.discovered_at,
        }
