"""
Tier List Scoring System - Core Package

This package contains the core modules for:
- Tier scoring, global score aggregation and ranking (tierlist.scoring)
- Single and bulk tier submission (tierlist.ingestion)
- Storage backends (tierlist.storage)
- Shared configuration and utilities
"""

from tierlist.config import *
