"""
Itinerary document store - SQLite (by default) with SQLAlchemy.

Day plans and the originating trip request live in JSON columns on one row
per itinerary. Writes are guarded by an optimistic ``version`` column so two
concurrent read-modify-write cycles cannot silently overwrite each other.
"""
import logging
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from TripRequest import TripRequest
from itinerary import DayPlan, Itinerary, ItineraryStatus
from agents.errors import ItineraryNotFound, StaleItinerary

logger = logging.getLogger(__name__)

Base = declarative_base()


def _now():
    return datetime.now(timezone.utc)


class ItineraryRecord(Base):
    __tablename__ = "itineraries"

    id = Column(String, primary_key=True)
    owner_id = Column(String, index=True, nullable=False)
    title = Column(String)
    status = Column(String, default=ItineraryStatus.DRAFT.value)  # draft, confirmed, ongoing, completed, cancelled
    trip_request = Column(JSON, nullable=False)
    days = Column(JSON, default=list)
    rating = Column(Integer, nullable=True)
    review = Column(Text, nullable=True)
    ai_model = Column(String, default="")
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime, default=_now)
    updated_at = Column(DateTime, default=_now, onupdate=_now)

    applied_changes = relationship("AppliedChange", back_populates="itinerary",
                                   cascade="all, delete-orphan")
    chat_messages = relationship("ChatMessage", back_populates="itinerary",
                                 cascade="all, delete-orphan")


class AppliedChange(Base):
    __tablename__ = "applied_changes"
    __table_args__ = (UniqueConstraint("itinerary_id", "change_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    itinerary_id = Column(String, ForeignKey("itineraries.id"), nullable=False)
    change_id = Column(String, nullable=False)
    applied_at = Column(DateTime, default=_now)

    itinerary = relationship("ItineraryRecord", back_populates="applied_changes")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    itinerary_id = Column(String, ForeignKey("itineraries.id"), index=True, nullable=False)
    user_id = Column(String, nullable=False)
    role = Column(String, nullable=False)  # user, assistant
    content = Column(Text, nullable=False)
    created_at = Column(DateTime, default=_now)

    itinerary = relationship("ItineraryRecord", back_populates="chat_messages")


def init_db(url: str = "sqlite:///./itineraries.db") -> sessionmaker:
    """Create tables and return a session factory bound to *url*."""
    kwargs = {}
    if url.startswith("sqlite"):
        kwargs["connect_args"] = {"check_same_thread": False}
        if ":memory:" in url or url == "sqlite://":
            # one shared connection, otherwise every session sees an empty db
            kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine)


def _to_domain(row: ItineraryRecord) -> Itinerary:
    return Itinerary(
        id=row.id,
        owner_id=row.owner_id,
        title=row.title or "",
        trip_request=TripRequest.from_dict(row.trip_request),
        days=[DayPlan.from_dict(d) for d in (row.days or [])],
        status=ItineraryStatus(row.status),
        rating=row.rating,
        review=row.review,
        version=row.version,
        ai_model=row.ai_model or "",
    )


def _columns(itinerary: Itinerary) -> dict:
    return {
        "owner_id": itinerary.owner_id,
        "title": itinerary.title,
        "status": itinerary.status.value,
        "trip_request": itinerary.trip_request.to_dict(encode_json=True),
        "days": [d.to_dict(encode_json=True) for d in itinerary.days],
        "rating": itinerary.rating,
        "review": itinerary.review,
        "ai_model": itinerary.ai_model,
    }


class ItineraryStore:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def load_itinerary(self, itinerary_id: str, owner_id: str) -> Itinerary:
        with self._session_factory() as db:
            row = (db.query(ItineraryRecord)
                   .filter(ItineraryRecord.id == itinerary_id,
                           ItineraryRecord.owner_id == owner_id)
                   .first())
            if not row:
                raise ItineraryNotFound(itinerary_id)
            return _to_domain(row)

    def list_itineraries(self, owner_id: str, status: Optional[ItineraryStatus] = None,
                         limit: Optional[int] = None, page: int = 1) -> list[Itinerary]:
        """Newest first; *limit* and 1-based *page* slice the result."""
        with self._session_factory() as db:
            query = db.query(ItineraryRecord).filter(ItineraryRecord.owner_id == owner_id)
            if status is not None:
                query = query.filter(ItineraryRecord.status == ItineraryStatus(status).value)
            query = query.order_by(ItineraryRecord.created_at.desc())
            if limit is not None:
                query = query.offset((max(page, 1) - 1) * limit).limit(limit)
            return [_to_domain(r) for r in query.all()]

    def delete_itinerary(self, itinerary_id: str, owner_id: str) -> None:
        """Delete an itinerary together with its applied-change ledger and chat history."""
        with self._session_factory() as db:
            row = (db.query(ItineraryRecord)
                   .filter(ItineraryRecord.id == itinerary_id,
                           ItineraryRecord.owner_id == owner_id)
                   .first())
            if not row:
                raise ItineraryNotFound(itinerary_id)
            db.delete(row)
            db.commit()
        logger.info("Deleted itinerary %s", itinerary_id)

    def save_itinerary(self, itinerary: Itinerary,
                       applied_change_id: Optional[str] = None) -> Itinerary:
        """Insert or update *itinerary*, bumping its version.

        An update only succeeds if the stored version still equals
        ``itinerary.version``; otherwise StaleItinerary is raised and nothing
        is written. ``applied_change_id`` is recorded in the same transaction.
        """
        with self._session_factory() as db:
            try:
                exists = db.query(ItineraryRecord.id).filter(
                    ItineraryRecord.id == itinerary.id).first()
                if exists is None:
                    new_version = 1
                    db.add(ItineraryRecord(id=itinerary.id, version=new_version,
                                           **_columns(itinerary)))
                else:
                    new_version = itinerary.version + 1
                    updated = (db.query(ItineraryRecord)
                               .filter(ItineraryRecord.id == itinerary.id,
                                       ItineraryRecord.version == itinerary.version)
                               .update({**_columns(itinerary), "version": new_version,
                                        "updated_at": _now()},
                                       synchronize_session=False))
                    if updated == 0:
                        actual = db.query(ItineraryRecord.version).filter(
                            ItineraryRecord.id == itinerary.id).scalar()
                        raise StaleItinerary(itinerary.id, itinerary.version, actual)

                if applied_change_id:
                    db.add(AppliedChange(itinerary_id=itinerary.id, change_id=applied_change_id))
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                logger.warning("Change %s already recorded for %s: %s",
                               applied_change_id, itinerary.id, exc)
                raise StaleItinerary(itinerary.id, itinerary.version, itinerary.version + 1) from exc
            except StaleItinerary:
                db.rollback()
                raise

        itinerary.version = new_version
        return itinerary

    def is_change_applied(self, itinerary_id: str, change_id: str) -> bool:
        with self._session_factory() as db:
            return db.query(AppliedChange.id).filter(
                AppliedChange.itinerary_id == itinerary_id,
                AppliedChange.change_id == change_id,
            ).first() is not None

    def add_chat_message(self, itinerary_id: str, user_id: str, role: str, content: str) -> None:
        with self._session_factory() as db:
            db.add(ChatMessage(itinerary_id=itinerary_id, user_id=user_id,
                               role=role, content=content))
            db.commit()

    def chat_history(self, itinerary_id: str, user_id: str, limit: int = 50) -> list[dict]:
        """Most recent *limit* messages, oldest first."""
        with self._session_factory() as db:
            rows = (db.query(ChatMessage)
                    .filter(ChatMessage.itinerary_id == itinerary_id,
                            ChatMessage.user_id == user_id)
                    .order_by(ChatMessage.id.desc())
                    .limit(limit)
                    .all())
            return [
                {"role": m.role, "content": m.content,
                 "created_at": m.created_at.isoformat() if m.created_at else None}
                for m in reversed(rows)
            ]

    def refresh_status(self, itinerary: Itinerary, today: Optional[date] = None) -> Itinerary:
        """Advance confirmed -> ongoing -> completed by comparing trip dates to *today*."""
        today = today or date.today()
        trip = itinerary.trip_request
        status = itinerary.status
        if status in (ItineraryStatus.CONFIRMED, ItineraryStatus.ONGOING):
            if today > trip.end_date():
                status = ItineraryStatus.COMPLETED
            elif today >= trip.start_date:
                status = ItineraryStatus.ONGOING
        if status != itinerary.status:
            logger.info("Itinerary %s: %s -> %s", itinerary.id, itinerary.status.value, status.value)
            itinerary.status = status
            self.save_itinerary(itinerary)
        return itinerary
