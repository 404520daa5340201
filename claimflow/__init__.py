"""
Claims adjudication workflow orchestration.

Runs eligibility, medical necessity, fraud risk and financial responsibility
stages for a submitted claim, derives the final disposition and scores the run
for quality and compliance.
"""

__version__ = "0.1.0"
