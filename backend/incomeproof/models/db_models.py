"""
Income Proof - SQLAlchemy ORM Models
Backend persistent storage (PostgreSQL in production, SQLite in tests)
"""
from datetime import datetime
from sqlalchemy import Column, String, Integer, BigInteger, DateTime, Boolean, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship

from ..database import Base
from .proof import ProofStatus


class UserDB(Base):
    """User account."""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)  # UUID
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    did = Column(String(255), unique=True, nullable=True)  # Decentralized identifier used by verifiers
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    verifications = relationship("IdentityVerificationDB", back_populates="user", cascade="all, delete-orphan")
    commitments = relationship("WitnessCommitmentDB", back_populates="user", cascade="all, delete-orphan")
    proof_submissions = relationship("ProofSubmissionDB", back_populates="user", cascade="all, delete-orphan")


class IdentityVerificationDB(Base):
    """
    Identity-verification provider results.

    A sub-check that the provider has not confirmed yet stays False; a row
    with all False is "no result yet", not "verification failed".
    """
    __tablename__ = "identity_verifications"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    session_id = Column(String(255), unique=True, nullable=False)
    ssn_verified = Column(Boolean, default=False, nullable=False)
    selfie_verified = Column(Boolean, default=False, nullable=False)
    document_verified = Column(Boolean, default=False, nullable=False)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    user = relationship("UserDB", back_populates="verifications")


class WitnessCommitmentDB(Base):
    """A witness hash committed by the user (the witness itself never leaves the device)."""
    __tablename__ = "witness_commitments"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    witness_hash = Column(String(64), nullable=False)
    committed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    on_chain_tx_hash = Column(String(255), nullable=True)

    user = relationship("UserDB", back_populates="commitments")


class ProofSubmissionDB(Base):
    """
    Backend-tracked state of a submitted proof.

    nullifier is UNIQUE at the database level; replay protection relies on
    this constraint, never on a check-then-insert in application code.
    All times are Unix seconds.
    """
    __tablename__ = "proof_submissions"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    proof_id = Column(String(255), unique=True, nullable=False)
    nullifier = Column(String(64), unique=True, nullable=False, index=True)
    tx_hash = Column(String(255), nullable=True)  # Assigned once broadcast
    circuit = Column(String(50), nullable=True)
    threshold = Column(Integer, nullable=False)
    wallet_address = Column(String(255), nullable=False)
    status = Column(SQLEnum(ProofStatus, values_callable=lambda e: [m.value for m in e]),
                    default=ProofStatus.PENDING, nullable=False, index=True)
    submitted_at = Column(BigInteger, nullable=False)
    confirmed_at = Column(BigInteger, nullable=True)
    expires_at = Column(BigInteger, nullable=False)
    failure_reason = Column(String(500), nullable=True)

    user = relationship("UserDB", back_populates="proof_submissions")
