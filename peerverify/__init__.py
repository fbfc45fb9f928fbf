"""
Peer Verification API Service.

Participants ask their peers to verify a claimed competency. Each assessor
contributes one score, the scores are aggregated into a verification
decision, and every assessor's reputation moves according to how closely
their score agreed with the aggregate.

The service allows users to:
- Register as participants
- Request assessment of a competency from the catalog
- Score other participants' assessments
- Finalize assessments and track reputation earned by agreement
"""

__version__ = "0.1.0"
