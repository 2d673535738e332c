from daybook.ingest.pipeline import IngestResult, ingest_records
from daybook.ingest.profile import ProfileService
from daybook.ingest.render import render_calendar_event, render_email, render_profile

__all__ = [
    "IngestResult",
    "ingest_records",
    "ProfileService",
    "render_calendar_event",
    "render_email",
    "render_profile",
]
