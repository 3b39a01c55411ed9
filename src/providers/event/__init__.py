"""Event persistence providers.

SQLiteEventStore keeps discovered events in the shared application database;
the discovery pipeline upserts into it by (title, event_date, location).
"""
