"""
Order Cadence Engine

Categorizes merchant orders by product tags, predicts each customer's next
purchase per category and keeps one categorized orders document per
customer in sync with the live order snapshot.
"""

__version__ = "1.0.0"
