"""
Panchayat citizen-services portal: application records, official documents
and live status updates.
"""
