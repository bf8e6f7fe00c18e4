from datetime import datetime, timezone

from parlay_club import db


class User(db.Model):
    """User directory entry; consulted only for display names"""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    display_name = db.Column(db.String(100))

    # Timestamps
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    # Relationships
    picks = db.relationship("Pick", backref="user", lazy="dynamic")

    def __repr__(self):
        return f"<User {self.username}>"

    @property
    def name(self):
        return self.display_name or self.username

    @staticmethod
    def get_display_names(user_ids):
        """Map of user id -> display name for the given ids"""
        if not user_ids:
            return {}
        users = User.query.filter(User.id.in_(set(user_ids))).all()
        return {user.id: user.name for user in users}

    def to_dict(self):
        return {"id": self.id, "username": self.username, "display_name": self.name}
