"""Source acquisition for LLVM working copies."""

from .git import RECORD_NAME, RevisionRecord, SourceAcquirer

__all__ = ["RECORD_NAME", "RevisionRecord", "SourceAcquirer"]
