"""
TalentGrid Screening Service
Resume intake and batch CV screening for job postings.

Architecture:
- PostgreSQL: Jobs, companies, users (read-only here, owned by the CRUD service)
- MongoDB: Batches, applicants, parsed resumes
- LLM (Groq): CV structuring and category scoring only, never experience
"""

__version__ = "1.0.0"
