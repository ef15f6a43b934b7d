"""Report API endpoints for the report generator

This module provides endpoints for creating, listing, reading and deleting
reports. Every endpoint requires authentication; users only reach their own
reports while administrators reach all of them.

Images sent with a new report go through the upload adapter in
`report_api.core.uploads`, which stores them on the media store before the
handler runs. All report handlers delegate to service functions that own the
database access."""
