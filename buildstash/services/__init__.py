"""
Services for buildstash.

The metadata/ subpackage resolves provenance; upload/ plans, transfers
and finalizes publications.
"""
