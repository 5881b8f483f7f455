"""Teller Risk Ledger Service.

This service provides the risk core behind the teller dashboard:
- Score incoming teller transactions against independent fraud detectors
- Fuse detector signals into a hold/pass verdict
- Persist reviewable alerts for the riskiest signal
- Record every consequential action in a hash-chained audit log
- Enforce segregation of duties on approvals and rejections
"""

__version__ = "0.1.0"
