import datetime

from towngen import db
from towngen.town.model import Town
from towngen.town.serialize import from_json, to_dot, to_json


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc)


class TownSnapshot(db.Model):
    """Latest committed revision of a generated town.

    Only the exports are stored; the Town itself is rebuilt from
    ``json_export`` when a reconcile request comes in.
    """

    __tablename__ = 'town_snapshots'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, default="")
    seed = db.Column(db.BigInteger, nullable=False)
    config_version = db.Column(db.String(32), nullable=False)
    revision = db.Column(db.Integer, nullable=False, default=1)
    state = db.Column(db.String(20), nullable=False, default="generated")
    json_export = db.Column(db.Text, nullable=False)
    dot_export = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow)
    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)

    @classmethod
    def from_town(cls, town: Town) -> "TownSnapshot":
        snap = cls()
        snap.apply(town)
        return snap

    def apply(self, town: Town) -> None:
        # exports first: if serialization fails nothing on the row has changed
        json_export, dot_export = to_json(town), to_dot(town)
        self.name = town.name
        self.seed = town.seed
        self.config_version = town.config.fingerprint()
        self.revision = town.revision
        self.state = town.state
        self.json_export = json_export
        self.dot_export = dot_export

    def to_town(self) -> Town:
        return from_json(self.json_export)

    def __repr__(self):
        return f'<TownSnapshot {self.id} seed={self.seed} rev={self.revision}>'
