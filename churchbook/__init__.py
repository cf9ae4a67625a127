"""
ChurchBook - offline-first church administration backend
Local record store, offline write queue and Supabase synchronization
"""

__version__ = "1.0.0"
