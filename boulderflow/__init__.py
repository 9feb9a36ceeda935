"""BoulderFlow client core.

Data gateway, view-state stores, proximity ranking, grip annotation and
camera capture for the BoulderFlow climbing tracker, plus the FastAPI
service hosting its two serverless functions.
"""

__version__ = "0.1.0"
