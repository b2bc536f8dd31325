# Author: PB & Claude
# Maintainer: PB
# Original date: 2026.10.17
# License: (c) HRDAG, 2026, GPL-2 or newer
#
# ------
# src/tfcmesh/service/database/models.py

"""SQLAlchemy models for the trivial file catalog schema."""

from sqlalchemy import (
    BigInteger,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()


class Dataset(Base):
    """Dataset names, created lazily on first file insert."""

    __tablename__ = "datasets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    dataset = Column(String(700), nullable=False, unique=True)

    files = relationship("File", back_populates="dataset_row")

    def __repr__(self):
        return f"<Dataset(id={self.id}, dataset={self.dataset})>"


class Block(Base):
    """Block names, created lazily on first file insert."""

    __tablename__ = "blocks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    block = Column(String(700), nullable=False, unique=True)

    files = relationship("File", back_populates="block_row")

    def __repr__(self):
        return f"<Block(id={self.id}, block={self.block})>"


class File(Base):
    """One physical copy (pfn) of a logical file (lfn)."""

    __tablename__ = "files"
    __table_args__ = (UniqueConstraint("lfn", "pfn", name="uq_files_lfn_pfn"),)

    id = Column(Integer, primary_key=True, autoincrement=True)

    # Names
    lfn = Column(String(700), nullable=False)  # Logical file name
    pfn = Column(String(700), nullable=False)  # Physical file name

    # Grouping
    blockid = Column(Integer, ForeignKey("blocks.id"), nullable=False)
    datasetid = Column(Integer, ForeignKey("datasets.id"), nullable=False)

    # Content
    size = Column("bytes", BigInteger, default=0)
    hash = Column(Text, default="")

    # Transfer bookkeeping
    transferTime = Column(Integer, default=0)  # Seconds spent moving the file here
    timestamp = Column(Integer, default=0)  # Unix time the copy was recorded

    dataset_row = relationship("Dataset", back_populates="files")
    block_row = relationship("Block", back_populates="files")

    def __repr__(self):
        return f"<File(lfn={self.lfn}, pfn={self.pfn}, bytes={self.size})>"


# Lookup indexes
Index("idx_files_lfn", File.lfn)
Index("idx_files_timestamp", File.timestamp)
Index("idx_files_datasetid", File.datasetid)
Index("idx_files_blockid", File.blockid)
