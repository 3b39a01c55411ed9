"""Newsletter persistence providers.

SQLiteNewsletterStore joins against the events table, so it shares a
database file with SQLiteEventStore.
"""
