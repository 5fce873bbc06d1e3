from empatify import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import uuid


def _uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


GAME_MODES = ('single-device', 'multi-device')


class User(UserMixin, db.Model):
    __tablename__ = 'users'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(255), unique=True, nullable=False)
    avatar_url = db.Column(db.Text, nullable=True)
    password_hash = db.Column(db.String(256), nullable=True)
    pro_plan = db.Column(db.Boolean, default=False, nullable=False)
    # Spotify OAuth tokens
    spotify_access_token = db.Column(db.Text, nullable=True)
    spotify_refresh_token = db.Column(db.Text, nullable=True)
    spotify_token_expires_at = db.Column(db.DateTime(timezone=True), nullable=True)
    spotify_user_id = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        if not self.password_hash:
            return False
        return bcrypt.check_password_hash(self.password_hash, password)

    @property
    def spotify_linked(self) -> bool:
        return bool(self.spotify_access_token and self.spotify_refresh_token)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'avatarUrl': self.avatar_url,
            'proPlan': self.pro_plan,
        }

    def to_public_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'avatarUrl': self.avatar_url,
        }


class Lobby(db.Model):
    __tablename__ = 'lobbies'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    host_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    category = db.Column(db.String(100), nullable=True)
    max_rounds = db.Column(db.Integer, default=5, nullable=False)
    game_mode = db.Column(db.String(20), default='multi-device', nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    host = db.relationship('User')
    participants = db.relationship('LobbyParticipant', back_populates='lobby', cascade='all, delete-orphan',
                                   order_by='LobbyParticipant.joined_at')
    songs = db.relationship('Song', back_populates='lobby', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'hostId': self.host_id,
            'category': self.category,
            'maxRounds': self.max_rounds,
            'gameMode': self.game_mode or 'multi-device',
            'createdAt': _iso(self.created_at),
        }


class LobbyParticipant(db.Model):
    __tablename__ = 'lobby_participants'
    __table_args__ = (db.UniqueConstraint('lobby_id', 'user_id', name='uq_lobby_participants_lobby_user'),)
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    lobby_id = db.Column(db.String(36), db.ForeignKey('lobbies.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    joined_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    lobby = db.relationship('Lobby', back_populates='participants')
    user = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.user.id,
            'name': self.user.name,
            'email': self.user.email,
            'avatarUrl': self.user.avatar_url,
            'joinedAt': _iso(self.joined_at),
        }


class Song(db.Model):
    __tablename__ = 'songs'
    __table_args__ = (
        db.UniqueConstraint('lobby_id', 'suggested_by', 'round_number', name='uq_songs_lobby_user_round'),
    )
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    spotify_track_id = db.Column(db.String(255), nullable=False)
    suggested_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    lobby_id = db.Column(db.String(36), db.ForeignKey('lobbies.id', ondelete='CASCADE'), nullable=False, index=True)
    round_number = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    lobby = db.relationship('Lobby', back_populates='songs')
    suggester = db.relationship('User')
    ratings = db.relationship('Rating', back_populates='song', cascade='all, delete-orphan')

    def to_dict(self):
        return {
            'id': self.id,
            'spotifyTrackId': self.spotify_track_id,
            'suggestedBy': self.suggested_by,
            'lobbyId': self.lobby_id,
            'roundNumber': self.round_number,
            'createdAt': _iso(self.created_at),
        }


class Rating(db.Model):
    __tablename__ = 'ratings'
    __table_args__ = (
        db.UniqueConstraint('song_id', 'given_by', name='uq_ratings_song_user'),
        db.CheckConstraint('rating_value >= 1 AND rating_value <= 10', name='rating_value_check'),
    )
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    song_id = db.Column(db.String(36), db.ForeignKey('songs.id', ondelete='CASCADE'), nullable=False, index=True)
    given_by = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    rating_value = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    song = db.relationship('Song', back_populates='ratings')

    def to_dict(self):
        return {
            'id': self.id,
            'songId': self.song_id,
            'givenBy': self.given_by,
            'ratingValue': self.rating_value,
            'createdAt': _iso(self.created_at),
        }


class UserMessage(db.Model):
    __tablename__ = 'user_messages'
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    sender_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    recipient_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    content = db.Column(db.Text, nullable=False)
    lobby_id = db.Column(db.String(36), db.ForeignKey('lobbies.id', ondelete='SET NULL'), nullable=True)
    sent_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)

    sender = db.relationship('User', foreign_keys=[sender_id])
    recipient = db.relationship('User', foreign_keys=[recipient_id])

    def to_dict(self):
        return {
            'id': self.id,
            'senderId': self.sender_id,
            'recipientId': self.recipient_id,
            'content': self.content,
            'lobbyId': self.lobby_id,
            'sentAt': _iso(self.sent_at),
            'senderName': self.sender.name if self.sender else None,
            'senderAvatarUrl': self.sender.avatar_url if self.sender else None,
        }


class MessageReadStatus(db.Model):
    __tablename__ = 'message_read_status'
    __table_args__ = (db.UniqueConstraint('message_id', 'user_id', name='uq_message_read_status_message_user'),)
    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    message_id = db.Column(db.String(36), db.ForeignKey('user_messages.id', ondelete='CASCADE'), nullable=False, index=True)
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    read_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)


class Friend(db.Model):
    __tablename__ = 'friends'
    user_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True)
    friend_id = db.Column(db.String(36), db.ForeignKey('users.id', ondelete='CASCADE'), primary_key=True, index=True)
    added_at = db.Column(db.DateTime(timezone=True), default=_utcnow, nullable=False)
