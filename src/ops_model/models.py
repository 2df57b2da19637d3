from sqlalchemy import (
    Column,
    String,
    DateTime,
    Text,
    Boolean,
    Index,
    BigInteger,
)
from .base import Base, uuid_pk, TimestampMixin


class CachedPost(Base, TimestampMixin):
    """Post facts fetched from the network, kept across sessions."""

    __tablename__ = "cached_posts"

    uri = Column(String(255), primary_key=True)  # at:// URI of the post
    parent_uri = Column(String(255), nullable=True)  # reply.parent.uri
    root_uri = Column(String(255), nullable=True, index=True)  # reply.root.uri
    content = Column(Text, nullable=True)  # Post text
    author_handle = Column(String(200), nullable=True)
    indexed_at = Column(DateTime, nullable=True)  # When the post was indexed
    fetched_at = Column(
        DateTime, nullable=False, index=True
    )  # When we last fetched it; drives expiry

    def __repr__(self):
        return f"<CachedPost(uri='{self.uri}', root_uri='{self.root_uri}')>"


class Pass(Base, TimestampMixin):
    """Bookkeeping for notification refresh passes."""

    __tablename__ = "passes"

    id = uuid_pk()
    pass_type = Column(
        String(50), nullable=False, default="bluesky_notifications"
    )  # Type of processing pass
    start_time = Column(DateTime, nullable=False)  # When this pass started
    end_time = Column(DateTime, nullable=True)  # When this pass completed
    last_processed_time = Column(
        DateTime, nullable=True
    )  # Latest notification timestamp seen
    messages_processed = Column(
        BigInteger, nullable=False, default=0
    )  # Count of notifications normalized
    success = Column(
        Boolean, nullable=False, default=False
    )  # Whether pass completed successfully
    notes = Column(Text, nullable=True)  # Enrichment stats for the pass

    def __repr__(self):
        return f"<Pass(pass_type='{self.pass_type}', start_time='{self.start_time}')>"


# Performance indexes
Index("idx_pass_type_start", Pass.pass_type, Pass.start_time)
