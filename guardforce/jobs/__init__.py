"""
Scheduled jobs for the Guardforce service layer.

Jobs:
- rescore_leads: refresh cached qualification scores of stale leads
"""
